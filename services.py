from decimal import localcontext
from typing import List, Optional, Tuple
import structlog

from models import (
    ARITHMETIC_PRECISION,
    Account,
    AccountSnapshot,
    StoredDeposit,
    Transaction,
    TransactionType,
)
from repositories import (
    AccountRepository,
    DepositRepository,
    InMemoryAccountRepository,
    InMemoryDepositRepository,
)

logger = structlog.get_logger()


class TransactionProcessor:
    """Applies transactions one at a time to client accounts.

    The processor is the only writer of its two repositories. Business-rule
    violations (duplicate deposit ids, insufficient funds, disputes against a
    missing or foreign deposit, anything addressed to a locked account) are
    dropped without raising, so a bad record never stops the stream.
    """

    def __init__(
        self,
        account_repo: Optional[AccountRepository] = None,
        deposit_repo: Optional[DepositRepository] = None,
    ):
        self.account_repo = account_repo if account_repo is not None else InMemoryAccountRepository()
        self.deposit_repo = deposit_repo if deposit_repo is not None else InMemoryDepositRepository()

    def apply(self, transaction: Transaction) -> None:
        """Apply one transaction. Never raises for business-rule violations."""
        with localcontext() as ctx:
            ctx.prec = ARITHMETIC_PRECISION
            if transaction.type == TransactionType.deposit:
                reason = self._apply_deposit(transaction)
            elif transaction.type == TransactionType.withdrawal:
                reason = self._apply_withdrawal(transaction)
            elif transaction.type == TransactionType.dispute:
                reason = self._apply_dispute(transaction)
            elif transaction.type == TransactionType.resolve:
                reason = self._apply_resolve(transaction)
            else:
                reason = self._apply_chargeback(transaction)

        if reason is not None:
            logger.debug(
                "Transaction ignored",
                reason=reason,
                type=transaction.type,
                client=transaction.client,
                tx=transaction.tx,
            )

    def snapshot(self, precision: int = 4) -> List[AccountSnapshot]:
        """Final account state, ordered by ascending client id."""
        return [
            AccountSnapshot.from_account(client_id, account, precision)
            for client_id, account in self.account_repo.items()
        ]

    def _apply_deposit(self, transaction) -> Optional[str]:
        amount = transaction.amount
        if amount <= 0:
            return "non_positive_amount"

        if self.deposit_repo.get_deposit(transaction.tx) is not None:
            return "duplicate_tx"

        account = self.account_repo.get_or_create_account(transaction.client)
        if account.locked:
            return "account_locked"

        account.available += amount
        self.deposit_repo.store_deposit(
            transaction.tx,
            StoredDeposit(client=transaction.client, amount=amount),
        )

        logger.debug(
            "Deposit processed",
            client=transaction.client,
            tx=transaction.tx,
            amount=str(amount),
            available=str(account.available),
        )
        return None

    def _apply_withdrawal(self, transaction) -> Optional[str]:
        amount = transaction.amount
        if amount <= 0:
            return "non_positive_amount"

        account = self.account_repo.get_account(transaction.client)
        if account is None:
            return "unknown_client"
        if account.locked:
            return "account_locked"

        if account.available < amount:
            return "insufficient_funds"

        account.available -= amount

        logger.debug(
            "Withdrawal processed",
            client=transaction.client,
            tx=transaction.tx,
            amount=str(amount),
            available=str(account.available),
        )
        return None

    def _disputed_deposit(self, transaction) -> Tuple[Optional[str], Optional[Account], Optional[StoredDeposit]]:
        """Shared preconditions of dispute, resolve and chargeback."""
        deposit = self.deposit_repo.get_deposit(transaction.tx)
        if deposit is None:
            return "unknown_tx", None, None

        # a client may only dispute its own deposits
        if deposit.client != transaction.client:
            return "client_mismatch", None, None

        account = self.account_repo.get_account(transaction.client)
        if account is None:
            return "unknown_client", None, None
        if account.locked:
            return "account_locked", None, None

        return None, account, deposit

    def _apply_dispute(self, transaction) -> Optional[str]:
        reason, account, deposit = self._disputed_deposit(transaction)
        if reason is not None:
            return reason
        if deposit.under_dispute:
            return "already_disputed"

        # available may go negative when the deposit was already withdrawn
        account.available -= deposit.amount
        account.held += deposit.amount
        deposit.under_dispute = True

        logger.debug(
            "Dispute opened",
            client=transaction.client,
            tx=transaction.tx,
            held=str(account.held),
        )
        return None

    def _apply_resolve(self, transaction) -> Optional[str]:
        reason, account, deposit = self._disputed_deposit(transaction)
        if reason is not None:
            return reason
        if not deposit.under_dispute:
            return "not_disputed"

        account.held -= deposit.amount
        account.available += deposit.amount
        deposit.under_dispute = False

        logger.debug(
            "Dispute resolved",
            client=transaction.client,
            tx=transaction.tx,
            available=str(account.available),
        )
        return None

    def _apply_chargeback(self, transaction) -> Optional[str]:
        reason, account, deposit = self._disputed_deposit(transaction)
        if reason is not None:
            return reason
        if not deposit.under_dispute:
            return "not_disputed"

        account.held -= deposit.amount
        account.locked = True
        deposit.under_dispute = False

        logger.info(
            "Account locked by chargeback",
            client=transaction.client,
            tx=transaction.tx,
            amount=str(deposit.amount),
        )
        return None


# Factory function for dependency injection
def get_transaction_processor(
    account_repo: Optional[AccountRepository] = None,
    deposit_repo: Optional[DepositRepository] = None,
) -> TransactionProcessor:
    return TransactionProcessor(account_repo, deposit_repo)
