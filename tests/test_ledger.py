import pytest

from config import DevelopmentSettings, Settings, TestingSettings, get_settings_for_environment
from models import Account, StatementEntry, StatementType
from repositories import AccountRepository, InMemoryAccountRepository
from services import get_balance


def make_entry(entry_id, type, amount, date="01/01/2024"):
    return StatementEntry(id=entry_id, type=type, amount=amount, date=date)


def make_account(account_id="acc-1", cpf="111", email="a@x.com"):
    return Account(
        id=account_id,
        cpf=cpf,
        name="A",
        email=email,
        password="p",
        createdAt="01/01/2024",
        updatedAt="01/01/2024",
    )


class TestGetBalance:
    """Test balance computation."""

    def test_empty_statement(self):
        assert get_balance([]) == 0

    def test_credits_minus_debits(self):
        statement = [
            make_entry("1", StatementType.credit, 100),
            make_entry("2", StatementType.debit, 30),
            make_entry("3", StatementType.credit, 5.5),
            make_entry("4", StatementType.debit, 0.5),
        ]

        assert get_balance(statement) == pytest.approx(75)

    def test_balance_of_whole_amounts_stays_integer(self):
        statement = [
            make_entry("1", StatementType.credit, 100),
            make_entry("2", StatementType.debit, 40),
        ]

        balance = get_balance(statement)

        assert balance == 60
        assert isinstance(balance, int)

    def test_balance_can_go_negative(self):
        statement = [make_entry("1", StatementType.debit, 10)]

        assert get_balance(statement) == -10


class TestInMemoryAccountRepository:
    """Test the in-memory account store."""

    @pytest.mark.asyncio
    async def test_lookup_by_cpf(self):
        repo = InMemoryAccountRepository()
        account = make_account()
        await repo.add_account(account)

        assert await repo.get_account_by_cpf("111") is account
        assert await repo.get_account_by_cpf("222") is None
        assert await repo.cpf_exists("111")
        assert await repo.email_exists("a@x.com")
        assert not await repo.email_exists("b@x.com")

    @pytest.mark.asyncio
    async def test_add_duplicate_raises(self):
        repo = InMemoryAccountRepository()
        await repo.add_account(make_account())

        with pytest.raises(ValueError):
            await repo.add_account(make_account(account_id="acc-2", email="b@x.com"))

        assert await repo.get_accounts_count() == 1

    @pytest.mark.asyncio
    async def test_append_and_remove_entries(self):
        repo = InMemoryAccountRepository()
        account = make_account()
        await repo.add_account(account)

        await repo.append_entry(account.id, make_entry("e1", StatementType.credit, 10))
        await repo.append_entry(account.id, make_entry("e2", StatementType.credit, 20))

        assert await repo.get_entries_count() == 2
        assert await repo.remove_entry(account.id, "e1") is True
        assert await repo.remove_entry(account.id, "missing") is False
        assert [entry.id for entry in account.statement] == ["e2"]

    @pytest.mark.asyncio
    async def test_append_to_unknown_account(self):
        repo = InMemoryAccountRepository()

        with pytest.raises(ValueError):
            await repo.append_entry("nope", make_entry("e1", StatementType.credit, 10))

    def test_lock_per_account(self):
        repo = InMemoryAccountRepository()

        assert repo.get_lock("a") is repo.get_lock("a")
        assert repo.get_lock("a") is not repo.get_lock("b")

    def test_repository_must_provide_lock(self):
        class LocklessRepository(AccountRepository):
            async def add_account(self, account): pass
            async def get_account_by_cpf(self, cpf): return None
            async def cpf_exists(self, cpf): return False
            async def email_exists(self, email): return False
            async def list_accounts(self): return []
            async def append_entry(self, account_id, entry): pass
            async def remove_entry(self, account_id, entry_id): return False
            async def get_accounts_count(self): return 0
            async def get_entries_count(self): return 0

        with pytest.raises(TypeError):
            LocklessRepository()


class TestSettings:
    """Test configuration presets."""

    def test_environment_presets(self):
        assert isinstance(get_settings_for_environment("development"), DevelopmentSettings)
        assert isinstance(get_settings_for_environment("TESTING"), TestingSettings)
        assert type(get_settings_for_environment("staging")) is Settings

    def test_date_defaults(self):
        settings = Settings()

        assert settings.timezone == "America/Sao_Paulo"
        assert settings.date_format == "%d/%m/%Y"
