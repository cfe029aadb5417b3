from booking_engine.tools.job_sink import HttpJobSink, JobSink, build_job_sink
from booking_engine.tools.services import get_all_services, get_service_offering, match_service

__all__ = [
    "HttpJobSink", "JobSink", "build_job_sink",
    "get_all_services", "get_service_offering", "match_service",
]
