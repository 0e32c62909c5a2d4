from agenda import models, repositories


def test_group_crud(client, admin_headers, make_user):
    creator = make_user(models.ROLE_FACULTY)
    r = client.post(
        "/api/grupos",
        json={"nombre": "Club de Lectura", "creador_id": creator.id, "tipo": "cultural"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    group = r.json()["data"]
    assert group["estado"] == "activo"
    assert group["miembros_count"] == 0
    assert group["creador"]["id"] == creator.id

    r2 = client.get(f"/api/grupos/{group['id']}", headers=admin_headers)
    assert r2.status_code == 200
    assert r2.json()["data"]["miembros"] == []

    r3 = client.put(f"/api/grupos/{group['id']}", json={"tipo": "social"}, headers=admin_headers)
    assert r3.json()["data"]["tipo"] == "social"

    assert client.delete(f"/api/grupos/{group['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/grupos/{group['id']}", headers=admin_headers).status_code == 404


def test_group_create_requires_existing_creator(client, admin_headers):
    r = client.post("/api/grupos", json={"nombre": "Sin Creador", "creador_id": 4040}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "creator user not found"


def test_group_validation(client, admin, admin_headers):
    r = client.post(
        "/api/grupos",
        json={"nombre": "Grupo", "creador_id": admin.id, "estado": "archivado", "tipo": "otro"},
        headers=admin_headers,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert fields == {"estado", "tipo"}


def test_group_creator_cannot_be_changed(client, admin_headers, make_user, make_group):
    creator = make_user(models.ROLE_FACULTY)
    group = make_group(creator)
    other = make_user(models.ROLE_FACULTY)
    r = client.put(f"/api/grupos/{group.id}", json={"creador_id": other.id}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["creador_id"] == creator.id


def test_group_listing_filters(client, admin_headers, make_user, make_group):
    creator = make_user(models.ROLE_FACULTY)
    make_group(creator, nombre="Grupo Académico", tipo="academico")
    make_group(creator, nombre="Grupo Deportivo", tipo="deportivo", estado="inactivo")
    make_group(make_user(models.ROLE_FACULTY), nombre="Otro Grupo")

    r = client.get("/api/grupos?estado=inactivo", headers=admin_headers)
    assert [g["nombre"] for g in r.json()["data"]] == ["Grupo Deportivo"]
    r2 = client.get(f"/api/grupos?creador_id={creator.id}", headers=admin_headers)
    assert r2.json()["pagination"]["total"] == 2
    r3 = client.get("/api/grupos?tipo=academico", headers=admin_headers)
    assert [g["nombre"] for g in r3.json()["data"]] == ["Grupo Académico"]
    r4 = client.get("/api/grupos?search=otro", headers=admin_headers)
    assert [g["nombre"] for g in r4.json()["data"]] == ["Otro Grupo"]


def test_nested_membership_routes(client, make_user, make_group, auth_headers):
    faculty = make_user(models.ROLE_FACULTY)
    headers = auth_headers(faculty)
    student = make_user()
    group = make_group(faculty)

    r = client.post(f"/api/grupos/{group.id}/miembros", json={"usuario_id": student.id}, headers=headers)
    assert r.status_code == 201
    member = r.json()["data"]
    assert member["grupo_id"] == group.id
    assert member["usuario"]["id"] == student.id

    dup = client.post(f"/api/grupos/{group.id}/miembros", json={"usuario_id": student.id}, headers=headers)
    assert dup.status_code == 409

    listed = client.get(f"/api/grupos/{group.id}/miembros", headers=auth_headers(student))
    assert listed.status_code == 200
    assert [m["usuario_id"] for m in listed.json()["data"]] == [student.id]
    assert listed.json()["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}

    detail = client.get(f"/api/grupos/{group.id}", headers=headers)
    assert detail.json()["data"]["miembros_count"] == 1
    assert detail.json()["data"]["miembros"][0]["usuario"]["id"] == student.id

    other_group = make_group(faculty, nombre="Otro Grupo")
    wrong = client.delete(f"/api/grupos/{other_group.id}/miembros/{member['id']}", headers=headers)
    assert wrong.status_code == 404

    removed = client.delete(f"/api/grupos/{group.id}/miembros/{member['id']}", headers=headers)
    assert removed.status_code == 200
    assert client.get(f"/api/grupos/{group.id}/miembros", headers=headers).json()["data"] == []


def test_group_members_are_paginated(client, session, admin_headers, make_user, make_group):
    group = make_group(make_user(models.ROLE_FACULTY))
    members = repositories.MemberRepository(session)
    for _ in range(3):
        members.save(models.Member(grupo_id=group.id, usuario_id=make_user().id))

    r = client.get(f"/api/grupos/{group.id}/miembros?limit=2&page=2", headers=admin_headers)
    assert r.status_code == 200
    assert len(r.json()["data"]) == 1
    assert r.json()["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}

    assert client.get(f"/api/grupos/{group.id}/miembros?limit=0", headers=admin_headers).status_code == 400


def test_nested_membership_on_missing_group(client, admin_headers, make_user):
    user = make_user()
    assert client.get("/api/grupos/999/miembros", headers=admin_headers).status_code == 404
    assert client.get("/api/grupos/999/miembros?limit=1", headers=admin_headers).json()["message"] == "group not found"
    r = client.post("/api/grupos/999/miembros", json={"usuario_id": user.id}, headers=admin_headers)
    assert r.status_code == 404


def test_flat_membership_crud(client, admin_headers, make_user, make_group):
    group = make_group(make_user(models.ROLE_FACULTY))
    user = make_user()
    r = client.post("/api/miembros", json={"grupo_id": group.id, "usuario_id": user.id}, headers=admin_headers)
    assert r.status_code == 201
    member = r.json()["data"]
    assert member["grupo"] == {"id": group.id, "nombre": group.nombre}

    r2 = client.get(f"/api/miembros?grupo_id={group.id}", headers=admin_headers)
    assert r2.json()["pagination"]["total"] == 1
    r3 = client.get(f"/api/miembros?usuario_id={user.id}", headers=admin_headers)
    assert [m["id"] for m in r3.json()["data"]] == [member["id"]]

    assert client.get(f"/api/miembros/{member['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/miembros/{member['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/miembros/{member['id']}", headers=admin_headers).status_code == 404


def test_membership_requires_existing_group_and_user(client, admin_headers, make_user, make_group):
    group = make_group(make_user(models.ROLE_FACULTY))
    r = client.post("/api/miembros", json={"grupo_id": 999, "usuario_id": 999}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "group not found"
    r2 = client.post("/api/miembros", json={"grupo_id": group.id, "usuario_id": 999}, headers=admin_headers)
    assert r2.status_code == 404
    assert r2.json()["message"] == "user not found"


def test_group_with_members_or_invitations_cannot_be_deleted(client, session, admin_headers, make_user, make_group):
    creator = make_user(models.ROLE_FACULTY)
    with_member = make_group(creator, nombre="Con Miembros")
    with_invitation = make_group(creator, nombre="Con Invitaciones")
    repositories.MemberRepository(session).save(models.Member(grupo_id=with_member.id, usuario_id=creator.id))
    repositories.InvitationRepository(session).save(
        models.Invitation(grupo_id=with_invitation.id, sender_id=creator.id, receiver="otro@uml.edu.ni")
    )

    r = client.delete(f"/api/grupos/{with_member.id}", headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["message"] == "cannot delete a group that has members"
    r2 = client.delete(f"/api/grupos/{with_invitation.id}", headers=admin_headers)
    assert r2.status_code == 409
    assert r2.json()["message"] == "cannot delete a group that has invitations"

    session.expire_all()
    assert session.get(models.Group, with_member.id) is not None
    assert session.get(models.Group, with_invitation.id) is not None
