from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse

from apps.departments.models import Department
from apps.finance.models import Transaction
from apps.finance.services import financial_summary


@pytest.fixture
def dept(make_user):
    return Department.objects.create(name="Operations", head=make_user(role="department_head"))


@pytest.mark.django_db
def test_summary_of_empty_set_is_zero():
    s = financial_summary(Transaction.objects.none())
    assert s == {"income": Decimal("0.00"), "expense": Decimal("0.00"), "balance": Decimal("0.00"), "total_transactions": 0}


@pytest.mark.django_db
def test_summary_totals(make_user, dept):
    fm = make_user(role="finance_manager")
    Transaction.objects.create(type="income", category="Donations", amount=Decimal("200.00"), created_by=fm)
    Transaction.objects.create(type="income", category="Fees", amount=Decimal("50.50"), created_by=fm)
    Transaction.objects.create(type="expense", category="Catering", amount=Decimal("80.25"), created_by=fm, department=dept)

    s = financial_summary()
    assert s["income"] == Decimal("250.50")
    assert s["expense"] == Decimal("80.25")
    assert s["balance"] == Decimal("170.25")
    assert s["total_transactions"] == 3


@pytest.mark.django_db
def test_expense_needs_event_or_department(make_user):
    with pytest.raises(ValidationError):
        Transaction.objects.create(type="expense", category="Rent", amount=Decimal("10"), created_by=make_user())


@pytest.mark.django_db
def test_api_rejects_unattached_expense(make_user, auth_client):
    r = auth_client(make_user(role="finance_manager")).post(
        reverse("finance_api:transaction-list"),
        {"type": "expense", "category": "Rent", "amount": "10.00"},
        format="json",
    )
    assert r.status_code == 400


@pytest.mark.django_db
def test_finance_manager_records_and_summarizes(make_user, auth_client, dept):
    fm = make_user(role="finance_manager")
    client = auth_client(fm)
    url = reverse("finance_api:transaction-list")

    r = client.post(url, {"type": "income", "category": " Donations ", "amount": "120.00", "date": "2024-01-10"}, format="json")
    assert r.status_code == 201, r.content
    assert r.json()["created_by"] == fm.id
    assert r.json()["category"] == "Donations"

    client.post(url, {"type": "expense", "category": "Supplies", "amount": "20.00",
                      "date": "2024-02-01", "department": dept.id}, format="json")

    s = client.get(reverse("finance_api:transaction-summary")).json()
    assert s["income"] == "120.00"
    assert s["expense"] == "20.00"
    assert s["balance"] == "100.00"
    assert s["total_transactions"] == 2
    assert s["top_categories"][0]["category"] == "Donations"

    s = client.get(reverse("finance_api:transaction-summary"), {"date_to": "2024-01-31"}).json()
    assert s["total_transactions"] == 1
    assert s["balance"] == "120.00"


@pytest.mark.django_db
def test_plain_users_are_denied(make_user, auth_client):
    client = auth_client(make_user())
    assert client.get(reverse("finance_api:transaction-list")).status_code == 403
    assert client.get(reverse("finance_api:transaction-summary")).status_code == 403


@pytest.mark.django_db
def test_only_admin_approves(make_user, auth_client, admin_user):
    fm = make_user(role="finance_manager")
    txn = Transaction.objects.create(type="income", category="Grant", amount=Decimal("1000"),
                                     created_by=fm, status="pending", date=date(2024, 3, 1))
    url = reverse("finance_api:transaction-approve", args=[txn.id])

    assert auth_client(fm).post(url).status_code == 403

    r = auth_client(admin_user).post(url)
    assert r.status_code == 200
    body = r.json()
    assert body["approved"] is True
    assert body["approved_by"] == admin_user.id
    assert body["status"] == "completed"
