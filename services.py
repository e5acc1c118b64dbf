import uuid
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Iterable, List, Optional, Union
from fastapi import HTTPException
import structlog

from config import get_settings
from models import (
    Account,
    AccountCreateRequest,
    StatementByDateResponse,
    StatementEntry,
    StatementOperationRequest,
    StatementResponse,
    StatementType,
    WithdrawResponse,
)
from repositories import AccountRepository

# Configure structured logging
logger = structlog.get_logger()


def get_balance(statement: Iterable[StatementEntry]) -> Union[int, float]:
    """Sum credits and subtract debits, in statement order."""
    balance = 0
    for entry in statement:
        if entry.type == StatementType.credit:
            balance += entry.amount
        else:
            balance -= entry.amount
    return balance


def today() -> str:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).strftime(settings.date_format)


class LedgerService:
    def __init__(self, account_repo: AccountRepository):
        self.account_repo = account_repo

    async def resolve_account(self, cpf: Optional[str], status_code: int = 401) -> Account:
        """Find the account identified by a request's cpf header.

        Raises an HTTPException with ``status_code`` when the header is
        missing or no account carries that cpf.
        """
        account = await self.account_repo.get_account_by_cpf(cpf) if cpf else None
        if account is None:
            logger.warning("Account not found", cpf=cpf, status_code=status_code)
            raise HTTPException(status_code=status_code, detail="Account not found")
        return account

    async def create_account(self, request: AccountCreateRequest) -> Account:
        email_taken = await self.account_repo.email_exists(request.email)
        cpf_taken = await self.account_repo.cpf_exists(request.cpf)

        if email_taken or cpf_taken:
            logger.warning(
                "Account creation rejected, email or cpf already exists",
                cpf=request.cpf,
                email_taken=email_taken,
                cpf_taken=cpf_taken
            )
            raise HTTPException(
                status_code=400,
                detail="Account email or cpf already exists"
            )

        created = today()
        account = Account(
            id=str(uuid.uuid4()),
            cpf=request.cpf,
            name=request.name,
            email=request.email,
            password=request.password,
            statement=[],
            createdAt=created,
            updatedAt=created,
        )
        await self.account_repo.add_account(account)

        logger.info("Account created", account_id=account.id, cpf=account.cpf)
        return account

    async def list_accounts(self) -> List[Account]:
        return await self.account_repo.list_accounts()

    async def get_statement(self, account: Account) -> StatementResponse:
        return StatementResponse(
            statement=account.statement,
            total=get_balance(account.statement)
        )

    async def get_statement_by_date(self, account: Account, date: str) -> StatementByDateResponse:
        statements = [entry for entry in account.statement if entry.date == date]
        return StatementByDateResponse(
            statements=statements,
            total=get_balance(account.statement)
        )

    async def deposit(self, account: Account, request: StatementOperationRequest) -> StatementEntry:
        entry = self._new_entry(request)

        async with self.account_repo.get_lock(account.id):
            await self.account_repo.append_entry(account.id, entry)

        logger.info(
            "Deposit recorded",
            account_id=account.id,
            entry_id=entry.id,
            type=entry.type.value,
            amount=entry.amount
        )
        return entry

    async def withdraw(self, account: Account, request: StatementOperationRequest) -> WithdrawResponse:
        async with self.account_repo.get_lock(account.id):
            balance = get_balance(account.statement)

            if balance < request.amount:
                logger.warning(
                    "Insufficient balance for withdraw",
                    account_id=account.id,
                    current_balance=balance,
                    requested_amount=request.amount
                )
                raise HTTPException(
                    status_code=400,
                    detail="You don't have enough balance"
                )

            entry = self._new_entry(request)
            await self.account_repo.append_entry(account.id, entry)
            total = get_balance(account.statement)

        logger.info(
            "Withdraw recorded",
            account_id=account.id,
            entry_id=entry.id,
            amount=entry.amount,
            old_balance=balance,
            new_balance=total
        )
        return WithdrawResponse(newStatement=entry, total=total)

    async def delete_statement_entry(self, cpf: Optional[str], entry_id: str) -> None:
        """Remove one statement entry.

        Resolves the account on its own and answers 400 when it is missing.
        An unknown entry id leaves the statement untouched.
        """
        account = await self.resolve_account(cpf, status_code=400)

        async with self.account_repo.get_lock(account.id):
            removed = await self.account_repo.remove_entry(account.id, entry_id)

        if removed:
            logger.info("Statement entry deleted", account_id=account.id, entry_id=entry_id)
        else:
            logger.debug("Statement entry not found, nothing deleted", account_id=account.id, entry_id=entry_id)

    def _new_entry(self, request: StatementOperationRequest) -> StatementEntry:
        return StatementEntry(
            id=str(uuid.uuid4()),
            type=request.type,
            amount=request.amount,
            date=today()
        )


# Factory function for dependency injection
def get_ledger_service(account_repo: AccountRepository) -> LedgerService:
    return LedgerService(account_repo)
