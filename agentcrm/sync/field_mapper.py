"""Field mapping between Salesforce/HubSpot payloads, local models and pipeline records.

Pipeline records are plain dicts in local field names, with the owning
company nested under ``company`` and remote ids kept alongside the local id.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

# Salesforce field name -> local model attribute
SALESFORCE_ACCOUNT_FIELD_MAP: dict[str, str] = {
    "Name": "name",
    "Industry": "industry",
    "AnnualRevenue": "revenue",
    "NumberOfEmployees": "size",
    "Website": "website",
}

SALESFORCE_CONTACT_FIELD_MAP: dict[str, str] = {
    "FirstName": "first_name",
    "LastName": "last_name",
    "Email": "email",
    "Phone": "phone",
    "Title": "title",
    "Department": "department",
    "LeadSource": "lead_source",
}

SALESFORCE_OPPORTUNITY_FIELD_MAP: dict[str, str] = {
    "Name": "name",
    "Amount": "amount",
    "StageName": "stage",
    "Probability": "probability",
    "CloseDate": "expected_close_date",
    "OwnerId": "owner_id",
}

SALESFORCE_OBJECT_MAPS: dict[str, dict[str, str]] = {
    "account": SALESFORCE_ACCOUNT_FIELD_MAP,
    "contact": SALESFORCE_CONTACT_FIELD_MAP,
    "opportunity": SALESFORCE_OPPORTUNITY_FIELD_MAP,
}

# HubSpot property -> local model attribute
HUBSPOT_CONTACT_FIELD_MAP: dict[str, str] = {
    "firstname": "first_name",
    "lastname": "last_name",
    "email": "email",
    "phone": "phone",
    "jobtitle": "title",
    "hubspot_owner_id": "owner_id",
}

HUBSPOT_DEAL_FIELD_MAP: dict[str, str] = {
    "dealname": "name",
    "amount": "amount",
    "dealstage": "stage",
    "closedate": "expected_close_date",
    "hubspot_owner_id": "owner_id",
}


def normalize_stage(value: Any) -> str:
    if not value:
        return "prospecting"
    return str(value).strip().lower().replace(" ", "_").replace("/", "_")


def _to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(round(number)) if number is not None else None


def _to_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _to_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raw = str(value).replace("Z", "+00:00")
    # Salesforce emits +0000 without a colon
    if len(raw) > 5 and raw[-5] in "+-" and raw[-3] != ":":
        raw = f"{raw[:-2]}:{raw[-2:]}"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _convert(local_key: str, value: Any) -> Any:
    if local_key in {"amount", "revenue"}:
        return _to_float(value)
    if local_key == "probability":
        return _to_int(value)
    if local_key == "expected_close_date":
        return _to_date(value)
    if local_key == "stage":
        return normalize_stage(value)
    if local_key == "size":
        return str(value) if value is not None else None
    return value


def map_fields(data: dict, field_map: dict[str, str]) -> dict:
    """Apply a remote -> local field map, dropping missing/None values."""
    result = {}
    for remote_key, local_key in field_map.items():
        if remote_key in data and data[remote_key] is not None:
            result[local_key] = _convert(local_key, data[remote_key])
    return result


def salesforce_to_local(object_type: str, data: dict) -> dict:
    """Convert a Salesforce sObject dict to local model kwargs."""
    return map_fields(data, SALESFORCE_OBJECT_MAPS[object_type])


def days_in_pipeline(created_at: Any, now: datetime | None = None) -> int | None:
    created = _to_datetime(created_at)
    if created is None:
        return None
    now = now or datetime.now(timezone.utc)
    return max(0, (now - created).days)


def _company_dict(company: Any) -> dict:
    if company is None:
        return {}
    return {
        "name": company.name,
        "industry": company.industry,
        "size": company.size,
        "revenue": company.revenue,
    }


def contact_record(contact: Any) -> dict:
    """Pipeline record for a local Contact."""
    return {
        "id": str(contact.id),
        "salesforce_id": contact.salesforce_id,
        "hubspot_id": contact.hubspot_id,
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "email": contact.email,
        "phone": contact.phone,
        "title": contact.title,
        "department": contact.department,
        "lead_source": contact.lead_source,
        "lead_score": contact.lead_score or 0,
        "status": contact.status,
        "owner_id": contact.owner_id,
        "company": _company_dict(contact.company),
    }


def opportunity_record(opp: Any, now: datetime | None = None) -> dict:
    """Pipeline record for a local Opportunity."""
    contact = opp.contact
    return {
        "id": str(opp.id),
        "salesforce_id": opp.salesforce_id,
        "hubspot_id": opp.hubspot_id,
        "name": opp.name,
        "amount": opp.amount,
        "stage": opp.stage,
        "probability": opp.probability or 0,
        "expected_close_date": opp.expected_close_date.isoformat() if opp.expected_close_date else None,
        "owner_id": opp.owner_id,
        "contact_id": str(opp.contact_id) if opp.contact_id else None,
        "contact_name": contact.full_name if contact else None,
        "company": _company_dict(opp.company),
        "days_in_pipeline": days_in_pipeline(opp.created_at, now),
    }


def salesforce_contact_record(data: dict) -> dict:
    account = data.get("Account") or {}
    record = {
        "id": None,
        "salesforce_id": data.get("Id"),
        "hubspot_id": None,
        "lead_score": 0,
        "status": None,
        "owner_id": data.get("OwnerId"),
        **salesforce_to_local("contact", data),
        "company": {
            "name": account.get("Name"),
            "industry": account.get("Industry"),
            "size": None,
            "revenue": _to_float(account.get("AnnualRevenue")),
        },
    }
    return record


def salesforce_opportunity_record(data: dict, now: datetime | None = None) -> dict:
    account = data.get("Account") or {}
    local = salesforce_to_local("opportunity", data)
    close = local.pop("expected_close_date", None)
    return {
        "id": None,
        "salesforce_id": data.get("Id"),
        "hubspot_id": None,
        "contact_id": None,
        "contact_name": None,
        **local,
        "probability": local.get("probability") or 0,
        "expected_close_date": close.isoformat() if close else None,
        "company": {
            "name": account.get("Name"),
            "industry": account.get("Industry"),
            "size": None,
            "revenue": None,
        },
        "days_in_pipeline": days_in_pipeline(data.get("CreatedDate"), now),
    }


def hubspot_contact_record(data: dict) -> dict:
    props = data.get("properties") or {}
    return {
        "id": None,
        "salesforce_id": None,
        "hubspot_id": data.get("id"),
        "lead_score": 0,
        "status": props.get("lifecyclestage"),
        **map_fields(props, HUBSPOT_CONTACT_FIELD_MAP),
        "company": {"name": props.get("company"), "industry": None, "size": None, "revenue": None},
    }


def hubspot_deal_record(data: dict, now: datetime | None = None) -> dict:
    props = data.get("properties") or {}
    local = map_fields(props, HUBSPOT_DEAL_FIELD_MAP)
    close = local.pop("expected_close_date", None)
    return {
        "id": None,
        "salesforce_id": None,
        "hubspot_id": data.get("id"),
        "contact_id": None,
        "contact_name": None,
        "probability": 0,
        **local,
        "expected_close_date": close.isoformat() if close else None,
        "company": {},
        "days_in_pipeline": days_in_pipeline(props.get("createdate"), now),
    }
