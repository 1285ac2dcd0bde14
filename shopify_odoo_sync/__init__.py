from .helpers import SyncError
from .services.sync.base import SyncResult
from .services.sync.service import SyncService
from .settings import SyncSettings, load_settings
