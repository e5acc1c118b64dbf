from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Union
from datetime import datetime


class StatementType(str, Enum):
    credit = "credit"
    debit = "debit"


class StatementEntry(BaseModel):
    id: str = Field(..., description="Unique statement entry identifier")
    type: StatementType = Field(..., description="Entry type")
    amount: Union[int, float] = Field(..., description="Entry amount")
    date: str = Field(..., description="Date the entry was recorded (dd/mm/yyyy)")


class Account(BaseModel):
    id: str = Field(..., description="Unique account identifier")
    cpf: str = Field(..., description="Account holder CPF, used to identify requests")
    name: str
    email: str
    password: str
    statement: List[StatementEntry] = Field(default_factory=list)
    createdAt: str = Field(..., description="Creation date")
    # Set at creation only; later operations do not touch it.
    updatedAt: str = Field(..., description="Last update date")


class AccountCreateRequest(BaseModel):
    name: str
    email: str
    password: str
    cpf: str


class StatementOperationRequest(BaseModel):
    type: StatementType = Field(..., description="Entry type, taken as given")
    amount: Union[int, float] = Field(..., description="Entry amount")


class StatementDateRequest(BaseModel):
    date: str = Field(..., description="Exact date string to match (dd/mm/yyyy)")


class StatementResponse(BaseModel):
    statement: List[StatementEntry]
    total: Union[int, float]


class StatementByDateResponse(BaseModel):
    statements: List[StatementEntry]
    total: Union[int, float] = Field(..., description="Balance over the whole statement, not just the matching entries")


class WithdrawResponse(BaseModel):
    newStatement: StatementEntry
    total: Union[int, float]


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error description")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of accounts in system")
    statement_entries_count: int = Field(..., description="Total statement entries across all accounts")
