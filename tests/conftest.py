"""Pytest fixtures for testing"""

from datetime import datetime, timezone
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from budget_cockpit.api.main import create_app


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client"""
    return TestClient(create_app())


@pytest.fixture
def iso_timestamp() -> str:
    return "2024-03-15T12:00:00+00:00"


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for stale-balance checks"""
    return datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def empty_state() -> Dict[str, Any]:
    """Persisted shape of a brand new household"""
    return {
        "income": [],
        "expenses": [],
        "assets": [],
        "assetHoldings": [],
        "debts": [],
        "credit": [],
        "creditCards": [],
        "loans": [],
        "goals": [],
        "notes": [],
        "personas": [],
        "schemaVersion": 2,
    }


@pytest.fixture
def sample_state() -> Dict[str, Any]:
    """
    Two-earner household in March 2024.

    $6000 income, $3000 expenses, one card, one car loan and a mortgage
    secured against the house.
    """
    return {
        "income": [
            {"id": "inc-1", "person": "Alex", "item": "Salary", "category": "Salary", "amount": 5000, "date": "2024-03-01", "tags": ["payroll"]},
            {"id": "inc-2", "person": "Sam", "item": "Freelance", "category": "Side", "amount": 1000, "date": "2024-03-05", "tags": []},
        ],
        "expenses": [
            {"id": "exp-1", "person": "Alex", "item": "Rent", "category": "Housing", "amount": 1800, "date": "2024-03-01", "tags": ["fixed"]},
            {"id": "exp-2", "person": "Sam", "item": "Groceries", "category": "Food", "amount": 700, "date": "2024-03-03", "tags": []},
            {"id": "exp-3", "person": "Alex", "item": "Internet", "category": "Utilities", "amount": 100, "date": "2024-03-04", "tags": ["fixed"]},
            {"id": "exp-4", "person": "Sam", "item": "Dining", "category": "Food", "amount": 400, "date": "2024-03-06", "tags": []},
        ],
        "assets": [
            {"id": "sav-1", "person": "Alex", "item": "HYSA", "category": "Savings", "recordType": "savings", "amount": 500, "date": "2024-03-02"},
        ],
        "assetHoldings": [
            {"id": "hold-1", "person": "Alex", "item": "Savings account", "assetMarketValue": 9000, "assetValueOwed": 0},
            {"id": "hold-2", "person": "Sam", "item": "Brokerage ETF", "assetMarketValue": 20000, "assetValueOwed": 0},
        ],
        "debts": [
            {
                "id": "debt-1", "person": "Alex", "item": "Mortgage", "amount": 200000, "minimumPayment": 1200,
                "interestRatePercent": 6, "remainingPayments": 300, "collateralAssetMarketValue": 250000,
                "updatedAt": "2024-03-10T00:00:00Z",
            },
        ],
        "credit": [],
        "creditCards": [
            {
                "id": "card-1", "person": "Sam", "item": "Visa", "maxCapacity": 5000, "currentBalance": 1500,
                "minimumPayment": 50, "monthlyPayment": 150, "interestRatePercent": 24,
                "updatedAt": "2024-03-01T00:00:00Z",
            },
        ],
        "loans": [
            {
                "id": "loan-1", "person": "Alex", "item": "Car loan", "amount": 12000, "minimumPayment": 350,
                "interestRatePercent": 5, "remainingPayments": 40, "updatedAt": "2024-03-12T00:00:00Z",
            },
        ],
        "goals": [
            {"id": "goal-1", "title": "Emergency fund", "status": "in progress", "timeframeMonths": 12, "targetAmount": 18000, "currentAmount": 9000},
            {"id": "goal-2", "title": "Trip to Japan", "status": "not started", "timeframeMonths": 10, "targetAmount": 6000, "currentAmount": 0},
        ],
        "notes": [],
        "personas": [{"name": "Alex", "note": "", "emoji": ""}, {"name": "Sam", "note": "", "emoji": ""}],
        "schemaVersion": 2,
    }
