from booking_engine.store.record_store import BookingRecordStore

__all__ = ["BookingRecordStore"]
