from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple
from models import Account, StoredDeposit


class AccountRepository(ABC):
    @abstractmethod
    def get_account(self, client_id: int) -> Optional[Account]:
        """Get account state. Returns None if the client has no account."""
        pass

    @abstractmethod
    def get_or_create_account(self, client_id: int) -> Account:
        """Get existing account or create an empty one."""
        pass

    @abstractmethod
    def items(self) -> Iterator[Tuple[int, Account]]:
        """Iterate (client_id, account) pairs in ascending client order."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class DepositRepository(ABC):
    @abstractmethod
    def get_deposit(self, tx_id: int) -> Optional[StoredDeposit]:
        """Get stored deposit by transaction id."""
        pass

    @abstractmethod
    def store_deposit(self, tx_id: int, deposit: StoredDeposit) -> None:
        """Store an accepted deposit for later dispute lookups."""
        pass

    @abstractmethod
    def get_deposits_count(self) -> int:
        """Get total number of stored deposits."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_account(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    def get_or_create_account(self, client_id: int) -> Account:
        if client_id not in self.accounts:
            self.accounts[client_id] = Account()
        return self.accounts[client_id]

    def items(self) -> Iterator[Tuple[int, Account]]:
        for client_id in sorted(self.accounts):
            yield client_id, self.accounts[client_id]

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryDepositRepository(DepositRepository):
    def __init__(self):
        self.store: Dict[int, StoredDeposit] = {}

    def get_deposit(self, tx_id: int) -> Optional[StoredDeposit]:
        return self.store.get(tx_id)

    def store_deposit(self, tx_id: int, deposit: StoredDeposit) -> None:
        if tx_id in self.store:
            raise ValueError(f"Deposit {tx_id} already stored")
        self.store[tx_id] = deposit

    def get_deposits_count(self) -> int:
        return len(self.store)
