#!/usr/bin/env python3
"""
Generates a synthetic payments/services/users dataset for CLI smoke tests.

The dataset covers one business week starting Wednesday 2024-06-12 and
exercises the awkward shapes: embedded-only linkage, duplicate ids, an
orphaned reference, accented client names and every lifecycle state.
"""

import json
import sys
from pathlib import Path
from typing import Any


def build_sample_dataset() -> dict[str, list[dict[str, Any]]]:
    users = [
        {"_id": "p1", "name": "Ana Lima"},
        {"_id": "p2", "firstName": "Bruno", "lastName": "Costa"},
    ]

    services = [
        {
            "_id": "s1",
            "partnerId": "p1",
            "firstName": "José",
            "lastName": "Amora",
            "serviceDate": "2024-06-12",
            "serviceType": {"id": "IN_PERSON_TOUR", "name": "In-Person Tour"},
            "finalValue": 50,
        },
        {
            "_id": "s2",
            "partnerId": "p1",
            "firstName": "Jose",
            "lastName": "Amora",
            "serviceDate": "2024-06-13",
            "serviceType": "CONCIERGE",
            "finalValue": 30,
        },
        {
            "id": "s3",
            "partnerId": "p2",
            "firstName": "Mary",
            "lastName": "Stone",
            "serviceDate": "2024-06-14T15:30:00",
            "serviceType": "VIRTUAL_TOUR",
            "finalValue": "45.50",
        },
        {
            "id": "s4",
            "partnerId": "p2",
            "firstName": "Carla",
            "lastName": "Dias",
            "serviceDate": "2024-06-20",
            "serviceType": "DELIVERY",
            "finalValue": 25,
        },
    ]

    payments = [
        {
            "_id": "pay1",
            "partnerId": "p1",
            "serviceIds": ["s1", "s2", "s1"],
            "weekStart": "2024-06-12T00:00:00",
            "weekEnd": "2024-06-18T23:59:59.999",
            "total": 0,
            "status": "SHARED",
        },
        {
            "id": "pay2",
            "partnerId": "p2",
            "partnerName": "Bruno Costa",
            "serviceIds": [],
            "services": [{"id": "s3", "firstName": "Mary", "lastName": "Stone", "finalValue": 45.5}],
            "weekStart": "2024-06-12T00:00:00",
            "status": "PENDING",
        },
        {
            "id": "pay3",
            "partnerId": "p2",
            "serviceIds": ["missing-service"],
            "total": 120,
            "createdAt": "2024-06-15T09:00:00",
            "status": "APPROVED",
            "notesLog": [{"id": "n1", "at": "2024-06-16T10:00:00", "text": "Approved by partner"}],
        },
        {
            "id": "pay4",
            "partnerId": "p2",
            "serviceIds": ["s4"],
            "weekStart": "2024-06-19T00:00:00",
            "status": "paid",
            "paidAt": "2024-07-02T12:00:00",
        },
    ]

    return {"users": users, "services": services, "payments": payments}


def write_sample_dataset(output_dir: Path) -> dict[str, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    paths: dict[str, Path] = {}
    for name, records in build_sample_dataset().items():
        path = output_dir / f"{name}.json"
        # payments are wrapped the way a paginated endpoint returns them
        payload: Any = {"items": records} if name == "payments" else records
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        paths[name] = path
    return paths


if __name__ == "__main__":
    if len(sys.argv) > 1:
        out = Path(sys.argv[1])
    else:
        out = Path("sample_data")
    for name, path in write_sample_dataset(out).items():
        print(f"Generated {name}: {path}")
