#!/usr/bin/env python3
"""
Seed demo users, clients and contracts, then print a bearer token per user.

Safe by default (dry-run). Use --apply to persist changes.
"""

import argparse
import random
from datetime import timedelta
from typing import List


DEMO_USERS = [
    ("partner@counselflow.dev", "Dana", "Levi", "PARTNER"),
    ("lawyer@counselflow.dev", "Omer", "Katz", "LAWYER"),
    ("paralegal@counselflow.dev", "Noa", "Bar", "PARALEGAL"),
]

DEMO_CLIENTS = [
    ("Acme Holdings", "legal@acme.example", "CORPORATION", "Manufacturing"),
    ("Blue River Foundation", "office@blueriver.example", "NON_PROFIT", "Education"),
    ("Jordan Miles", "jordan@miles.example", "INDIVIDUAL", None),
]


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo data for the contracts API.")
    parser.add_argument("--apply", action="store_true", help="Persist changes (default: dry-run)")
    parser.add_argument("--contracts", type=int, default=20, help="Contracts per client")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    args = parser.parse_args()

    from counselflow.auth import create_access_token
    from counselflow.config import get_settings
    from counselflow.db import (
        Client, ClientType, Contract, ContractStatus, ContractType, Database, Priority, RiskLevel,
        User, UserRole, utc_now,
    )
    from counselflow.schemas import serialize_tags

    rng = random.Random(args.seed)
    settings = get_settings()
    database = Database.from_settings(settings)
    database.init_schema()

    users: List[User] = []
    created_contracts = 0
    now = utc_now()

    try:
        with database.session() as db:
            for email, first, last, role in DEMO_USERS:
                user = db.query(User).filter(User.email == email).first()
                if user is None:
                    user = User(email=email, first_name=first, last_name=last, role=UserRole(role))
                    db.add(user)
                users.append(user)
            db.flush()

            lawyer = users[1]
            for name, email, client_type, industry in DEMO_CLIENTS:
                client = Client(
                    name=name,
                    email=email,
                    client_type=ClientType(client_type),
                    industry=industry,
                    assigned_lawyer_id=lawyer.id,
                )
                db.add(client)
                db.flush()

                for i in range(args.contracts):
                    created = now - timedelta(days=rng.randint(0, 90))
                    start = created + timedelta(days=rng.randint(0, 14))
                    db.add(Contract(
                        title=f"{rng.choice(list(ContractType)).value.replace('_', ' ').title()} #{i + 1} - {name}",
                        type=rng.choice(list(ContractType)),
                        status=rng.choice(list(ContractStatus)),
                        risk_level=rng.choice(list(RiskLevel)),
                        priority=rng.choice(list(Priority)),
                        value=round(rng.uniform(5_000, 500_000), 2) if rng.random() > 0.2 else None,
                        start_date=start,
                        end_date=start + timedelta(days=rng.randint(20, 720)) if rng.random() > 0.3 else None,
                        client_id=client.id,
                        assigned_lawyer_id=rng.choice(users).id,
                        tags=serialize_tags(rng.sample(["renewal", "priority", "ip", "gdpr", "board"], 2)),
                        created_at=created,
                        updated_at=created,
                    ))
                    created_contracts += 1

            print(f"Users: {len(users)}, clients: {len(DEMO_CLIENTS)}, contracts: {created_contracts}")
            for user in users:
                token = create_access_token({"sub": user.id, "email": user.email}, settings)
                print(f"{user.role.value:<10} {user.email:<28} {token}")

            if not args.apply:
                print("Dry-run: rolling back (use --apply to persist)")
                db.rollback()
    finally:
        database.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
