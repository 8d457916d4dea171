from .base import CredentialStore, DroneStore, ScanStore, RecordStore
from .memory import MemoryStore
