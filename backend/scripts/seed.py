"""CLI script to load demo data into the directory database.

Usage: python scripts/seed.py [--database-url URL]

The script is idempotent: every record is looked up by its natural key
(career code, user email, group name + creator, membership pair,
invitation group + receiver) and only created when missing.
"""
import sys
import argparse
import pathlib
from datetime import date
from typing import Optional
# Ensure `backend/` is on sys.path so `agenda` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session, select
from agenda import models, repositories
from agenda.config import settings
from agenda.database import build_engine, create_db_and_tables

CAREERS = [
    {"nombre": "Ingeniería en Sistemas", "codigo": 1001},
    {"nombre": "Administración de Empresas", "codigo": 1002},
    {"nombre": "Contabilidad Pública", "codigo": 1003},
    {"nombre": "Ingeniería Industrial", "codigo": 1004},
]

# `carrera` is an index into CAREERS
USERS = [
    {"nombres": "Administrador", "apellidos": "Sistema", "correo": "admin@uml.edu.ni", "rol": "admin",
     "fecha": date(1990, 1, 1), "nivel": 1, "celular": "8888-8888", "telefono": "2222-2222", "carnet": "ADMIN001"},
    {"nombres": "Juan Carlos", "apellidos": "González", "correo": "profesor@uml.edu.ni", "rol": "profesor",
     "carrera": 0, "fecha": date(1985, 5, 15), "nivel": 5, "celular": "8888-1111", "telefono": "2222-1111",
     "carnet": "PROF001"},
    {"nombres": "María Elena", "apellidos": "Rodríguez", "correo": "estudiante@uml.edu.ni", "rol": "estudiante",
     "carrera": 0, "fecha": date(2000, 8, 20), "nivel": 3, "celular": "8888-2222", "telefono": "2222-3333",
     "carnet": "EST001"},
    {"nombres": "Ana Patricia", "apellidos": "López", "correo": "oficina@uml.edu.ni", "rol": "oficina",
     "fecha": date(1988, 12, 10), "nivel": 2, "celular": "8888-3333", "telefono": "2222-4444", "carnet": "OFI001"},
    {"nombres": "Carlos Alberto", "apellidos": "Martínez", "correo": "estudiante2@uml.edu.ni", "rol": "estudiante",
     "carrera": 1, "fecha": date(2001, 3, 25), "nivel": 2, "celular": "8888-4444", "telefono": "2222-5555",
     "carnet": "EST002"},
]

# `creador` is an index into USERS
GROUPS = [
    {"nombre": "Grupo de Estudio IS-2024", "creador": 1},
    {"nombre": "Grupo de Investigación", "creador": 0},
    {"nombre": "Grupo de Programación", "creador": 1},
]

# (group index, user index)
MEMBERS = [(0, 2), (0, 4), (1, 1), (2, 2)]

# (group index, sender index, receiver, estado)
INVITATIONS = [
    (0, 1, "nuevo.estudiante@uml.edu.ni", models.INVITATION_PENDING),
    (1, 0, "investigador@uml.edu.ni", models.INVITATION_ACCEPTED),
    (2, 1, "programador@uml.edu.ni", models.INVITATION_REJECTED),
]


def seed(session: Session) -> dict:
    """Insert the demo records that do not exist yet.

    Returns the number of newly created rows per table.
    """
    created = {"carreras": 0, "usuarios": 0, "grupos": 0, "miembros": 0, "invitaciones": 0}
    career_repo = repositories.CareerRepository(session)
    user_repo = repositories.UserRepository(session)
    group_repo = repositories.GroupRepository(session)
    member_repo = repositories.MemberRepository(session)
    invitation_repo = repositories.InvitationRepository(session)

    careers = []
    for data in CAREERS:
        career = career_repo.get_by_codigo(data["codigo"])
        if not career:
            career = career_repo.save(models.Career(**data))
            created["carreras"] += 1
        careers.append(career)

    users = []
    for data in USERS:
        fields = {k: v for k, v in data.items() if k != "carrera"}
        if "carrera" in data:
            fields["carrera_id"] = careers[data["carrera"]].id
        user = user_repo.get_by_correo(fields["correo"])
        if not user:
            user = user_repo.save(models.User(**fields))
            created["usuarios"] += 1
        users.append(user)

    groups = []
    for data in GROUPS:
        creator = users[data["creador"]]
        group = session.exec(
            select(models.Group).where(models.Group.nombre == data["nombre"], models.Group.creador_id == creator.id)
        ).first()
        if not group:
            group = group_repo.save(models.Group(nombre=data["nombre"], creador_id=creator.id))
            created["grupos"] += 1
        groups.append(group)

    for group_idx, user_idx in MEMBERS:
        group, user = groups[group_idx], users[user_idx]
        if not member_repo.get_for(group.id, user.id):
            member_repo.save(models.Member(grupo_id=group.id, usuario_id=user.id))
            created["miembros"] += 1

    for group_idx, sender_idx, receiver, estado in INVITATIONS:
        group = groups[group_idx]
        if not invitation_repo.find_for(group.id, receiver):
            invitation_repo.save(models.Invitation(
                grupo_id=group.id, sender_id=users[sender_idx].id, receiver=receiver, estado=estado
            ))
            created["invitaciones"] += 1

    return created


def main(database_url: Optional[str] = None):
    """Create the tables if needed and load the demo data."""
    engine = build_engine(database_url or settings.DATABASE_URL)
    create_db_and_tables(engine)
    with Session(engine) as session:
        created = seed(session)
    engine.dispose()
    for table, n in created.items():
        print(f'{table}: {n} created')
    print('Demo accounts: ' + ', '.join(u["correo"] for u in USERS))


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()
    main(database_url=args.database_url)
