from .importers.company_importer import CompanyImporter
from .importers.customer_importer import CustomerImporter
from .importers.order_importer import OrderImporter
from .importers.transaction_importer import TransactionImporter
from .service import RequestScope, SyncService
