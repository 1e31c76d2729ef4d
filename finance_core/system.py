"""
Finance system container wiring storage and all managers together
"""

from typing import Optional

from .storage import StorageInterface, create_storage
from .config import FinanceConfig, get_config
from .logging_config import get_logger
from .users import UserManager
from .accounts import AccountManager
from .categories import CategoryManager
from .debtors import DebtorManager
from .debts import DebtManager
from .transactions import TransactionManager
from .subscriptions import SubscriptionManager, SubscriptionProcessor
from .summary import SummaryAggregator


class FinanceSystem:
    """Ledger with all components initialized over one storage backend"""

    def __init__(self, storage: Optional[StorageInterface] = None, config: Optional[FinanceConfig] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.logger = get_logger("finance_core")

        self.user_manager = UserManager(self.storage, self.config, get_logger("finance_core.users"))
        self.account_manager = AccountManager(self.storage, get_logger("finance_core.accounts"))
        self.category_manager = CategoryManager(self.storage, get_logger("finance_core.categories"))
        self.debtor_manager = DebtorManager(self.storage, get_logger("finance_core.debtors"))

        self.transaction_manager = TransactionManager(
            self.storage, self.account_manager, self.category_manager,
            self.config, get_logger("finance_core.transactions")
        )
        self.debt_manager = DebtManager(
            self.storage, self.debtor_manager, self.account_manager,
            self.category_manager, self.transaction_manager, get_logger("finance_core.debts")
        )
        self.subscription_manager = SubscriptionManager(
            self.storage, self.account_manager, self.category_manager,
            self.transaction_manager, self.config, get_logger("finance_core.subscriptions")
        )
        self.transaction_manager.debt_manager = self.debt_manager
        self.transaction_manager.subscription_manager = self.subscription_manager

        self.summary_aggregator = SummaryAggregator(
            self.transaction_manager, self.subscription_manager, get_logger("finance_core.summary")
        )
        self.subscription_processor = SubscriptionProcessor(
            self.subscription_manager,
            self.config.subscription_processing_interval_seconds,
            get_logger("finance_core.subscriptions")
        )

    def start(self) -> None:
        """Start background processing if enabled"""
        if self.config.subscription_processing_enabled:
            self.subscription_processor.start()

    def shutdown(self) -> None:
        self.subscription_processor.stop()
        self.storage.close()
        self.logger.info("Finance system shut down")
