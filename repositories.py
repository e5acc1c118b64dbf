from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import asyncio
from collections import defaultdict
from models import Account, StatementEntry


class AccountRepository(ABC):
    @abstractmethod
    async def add_account(self, account: Account) -> None:
        """Store a new account."""
        pass

    @abstractmethod
    async def get_account_by_cpf(self, cpf: str) -> Optional[Account]:
        """Get account by CPF. Returns None if no account matches."""
        pass

    @abstractmethod
    async def cpf_exists(self, cpf: str) -> bool:
        pass

    @abstractmethod
    async def email_exists(self, email: str) -> bool:
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """List every account in creation order."""
        pass

    @abstractmethod
    async def append_entry(self, account_id: str, entry: StatementEntry) -> None:
        """Append an entry to the end of an account statement."""
        pass

    @abstractmethod
    async def remove_entry(self, account_id: str, entry_id: str) -> bool:
        """Remove a statement entry by id. Returns False if it was not found."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass

    @abstractmethod
    async def get_entries_count(self) -> int:
        """Get total number of statement entries across all accounts."""
        pass

    @abstractmethod
    def get_lock(self, account_id: str) -> asyncio.Lock:
        """Get the lock serializing statement changes on one account."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[str, Account] = {}
        self.cpf_index: Dict[str, str] = {}
        self.email_index: Dict[str, str] = {}
        self.locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def add_account(self, account: Account) -> None:
        if account.cpf in self.cpf_index or account.email in self.email_index:
            raise ValueError(f"Account with cpf {account.cpf} or email {account.email} already exists")
        self.accounts[account.id] = account
        self.cpf_index[account.cpf] = account.id
        self.email_index[account.email] = account.id

    async def get_account_by_cpf(self, cpf: str) -> Optional[Account]:
        account_id = self.cpf_index.get(cpf)
        if account_id is None:
            return None
        return self.accounts[account_id]

    async def cpf_exists(self, cpf: str) -> bool:
        return cpf in self.cpf_index

    async def email_exists(self, email: str) -> bool:
        return email in self.email_index

    async def list_accounts(self) -> List[Account]:
        return list(self.accounts.values())

    async def append_entry(self, account_id: str, entry: StatementEntry) -> None:
        if account_id not in self.accounts:
            raise ValueError(f"Account {account_id} does not exist")
        self.accounts[account_id].statement.append(entry)

    async def remove_entry(self, account_id: str, entry_id: str) -> bool:
        if account_id not in self.accounts:
            raise ValueError(f"Account {account_id} does not exist")
        statement = self.accounts[account_id].statement
        for index, entry in enumerate(statement):
            if entry.id == entry_id:
                del statement[index]
                return True
        return False

    async def get_accounts_count(self) -> int:
        return len(self.accounts)

    async def get_entries_count(self) -> int:
        return sum(len(account.statement) for account in self.accounts.values())

    def get_lock(self, account_id: str) -> asyncio.Lock:
        """Get lock for specific account."""
        return self.locks[account_id]


_account_repo = InMemoryAccountRepository()


def get_account_repository() -> AccountRepository:
    return _account_repo
