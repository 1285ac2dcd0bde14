from .client import OdooClient, OdooEnvironment
from .domain import Command, RelationCommand
from .external_ids import ExternalIdMapping, ExternalIdResolver
from .master_data import MasterData, MasterDataManager
