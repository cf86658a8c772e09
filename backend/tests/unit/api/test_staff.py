"""
Unit Tests for Clinic Staff API Endpoints
"""
import json

import pytest
from httpx import AsyncClient
from faker import Faker

from app.services.key_storage_service import key_storage_service

fake = Faker()


def staff_dto(role: str, **overrides) -> str:
    data = {
        'username': fake.unique.user_name()[:40],
        'email': fake.unique.email(),
        'password': 'staffPassword1',
        'name': fake.first_name(),
        'surname': fake.last_name(),
        'role': role,
    }
    data.update(overrides)
    return json.dumps(data)


def key_files(keys: dict) -> dict:
    return {
        'public_key_file': ('vet_pub.pem', keys['public_pem'], 'application/x-pem-file'),
        'private_key_file': ('vet_priv.pem', keys['private_pem'], 'application/x-pem-file'),
    }


class TestCreateStaff:

    @pytest.mark.asyncio
    async def test_create_admin(self, client: AsyncClient, clinic, admin_headers):
        response = await client.post('/api/staff', headers=admin_headers, data={'dto': staff_dto('ADMIN')})

        assert response.status_code == 201
        data = response.json()
        assert data['roles'] == ['ADMIN']
        assert data['clinic_id'] == clinic.id
        assert data['is_active'] is True

    @pytest.mark.asyncio
    async def test_create_vet_stores_keys(self, client: AsyncClient, admin_headers, other_keys):
        response = await client.post(
            '/api/staff', headers=admin_headers,
            data={'dto': staff_dto('VET', username='dr_new', license_number='LIC-NEW-1')},
            files=key_files(other_keys),
        )

        assert response.status_code == 201
        data = response.json()
        assert data['license_number'] == 'LIC-NEW-1'
        assert data['vet_public_key'] == 'public_keys/vets/vet_dr_new_pub.pem'
        stored = await key_storage_service.get_public_key_content(data['vet_public_key'])
        assert stored == other_keys['public_pem']

    @pytest.mark.asyncio
    async def test_vet_requires_license(self, client: AsyncClient, admin_headers, other_keys):
        response = await client.post('/api/staff', headers=admin_headers,
                                     data={'dto': staff_dto('VET')}, files=key_files(other_keys))

        assert response.status_code == 400
        assert response.json()['error']['details'] == {'field': 'license_number'}

    @pytest.mark.asyncio
    async def test_vet_requires_key_files(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/staff', headers=admin_headers,
                                     data={'dto': staff_dto('VET', license_number='LIC-NEW-2')})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_license(self, client: AsyncClient, vet, admin_headers, other_keys):
        response = await client.post(
            '/api/staff', headers=admin_headers,
            data={'dto': staff_dto('VET', license_number=vet.license_number)},
            files=key_files(other_keys),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_owner_role_rejected(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/staff', headers=admin_headers, data={'dto': staff_dto('OWNER')})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_vet_cannot_create_staff(self, client: AsyncClient, vet_headers):
        response = await client.post('/api/staff', headers=vet_headers, data={'dto': staff_dto('ADMIN')})

        assert response.status_code == 403


class TestUpdateStaff:

    @pytest.mark.asyncio
    async def test_update_name_and_roles(self, client: AsyncClient, vet, admin_headers):
        response = await client.put(f'/api/staff/{vet.id}', headers=admin_headers,
                                    data={'dto': json.dumps({'name': 'Lucia', 'roles': ['VET', 'ADMIN']})})

        assert response.status_code == 200
        data = response.json()
        assert data['name'] == 'Lucia'
        assert data['roles'] == ['ADMIN', 'VET']

    @pytest.mark.asyncio
    async def test_replace_vet_keys(self, client: AsyncClient, vet, admin_headers, other_keys):
        response = await client.put(f'/api/staff/{vet.id}', headers=admin_headers, files=key_files(other_keys))

        assert response.status_code == 200
        assert await key_storage_service.get_public_key_content(vet.vet_public_key) == other_keys['public_pem']
        assert await key_storage_service.get_private_key_content(vet.vet_private_key) == other_keys['private_pem']

    @pytest.mark.asyncio
    async def test_rejected_private_key_keeps_both_keys(self, client: AsyncClient, vet, admin_headers,
                                                        vet_keys, other_keys):
        files = {
            'public_key_file': ('vet_pub.pem', other_keys['public_pem'], 'application/x-pem-file'),
            'private_key_file': ('vet_priv.pem', b'not a pem key', 'application/x-pem-file'),
        }

        response = await client.put(f'/api/staff/{vet.id}', headers=admin_headers, files=files)

        assert response.status_code == 400
        assert await key_storage_service.get_public_key_content(vet.vet_public_key) == vet_keys['public_pem']
        assert await key_storage_service.get_private_key_content(vet.vet_private_key) == vet_keys['private_pem']

    @pytest.mark.asyncio
    async def test_other_clinic_admin_denied(self, client: AsyncClient, vet, other_admin, headers_for):
        response = await client.put(f'/api/staff/{vet.id}', headers=headers_for(other_admin),
                                    data={'dto': json.dumps({'name': 'Lucia'})})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_inactive_staff_cannot_be_updated(self, client: AsyncClient, db_session, vet, admin_headers):
        vet.is_active = False
        await db_session.commit()

        response = await client.put(f'/api/staff/{vet.id}', headers=admin_headers,
                                    data={'dto': json.dumps({'name': 'Lucia'})})

        assert response.status_code == 409


class TestActivation:

    @pytest.mark.asyncio
    async def test_deactivate_and_activate(self, client: AsyncClient, vet, admin_headers):
        response = await client.put(f'/api/staff/{vet.id}/deactivate', headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['is_active'] is False

        response = await client.put(f'/api/staff/{vet.id}/activate', headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['is_active'] is True

    @pytest.mark.asyncio
    async def test_deactivated_vet_loses_access(self, client: AsyncClient, vet, admin_headers, vet_headers):
        await client.put(f'/api/staff/{vet.id}/deactivate', headers=admin_headers)

        response = await client.get('/api/users/me', headers=vet_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, client: AsyncClient, admin, admin_headers):
        response = await client.put(f'/api/staff/{admin.id}/deactivate', headers=admin_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_activate_already_active(self, client: AsyncClient, vet, admin_headers):
        response = await client.put(f'/api/staff/{vet.id}/activate', headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_owner_is_not_staff(self, client: AsyncClient, owner, admin_headers):
        response = await client.put(f'/api/staff/{owner.id}/deactivate', headers=admin_headers)

        assert response.status_code == 403
