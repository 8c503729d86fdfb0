# Persistence contracts and their PostgreSQL implementations
from core.repositories.invoice_repository import (
    InvoiceRepository,
    PostgresInvoiceRepository,
    StatusTotal,
)
from core.repositories.customer_repository import (
    CustomerRepository,
    PostgresCustomerRepository,
)
