"""
Unit Tests for Medical Record API Endpoints
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.security import create_access_token, create_temporary_record_access_token, decode_jwt
from app.models.record import Record
from app.services.signing_service import signing_service


def vaccine(**overrides) -> dict:
    data = {
        'name': 'Rabisin',
        'validity': 3,
        'laboratory': 'Boehringer',
        'batch_number': 'RB-2024-01',
        'is_rabies_vaccine': True,
    }
    data.update(overrides)
    return data


async def create_record(client, headers, pet, **body):
    payload = {'pet_id': pet.id, 'type': 'ANNUAL_CHECK', 'description': 'Healthy'}
    payload.update(body)
    return await client.post('/api/records', headers=headers, json=payload)


class TestCreateRecord:

    @pytest.mark.asyncio
    async def test_owner_record_is_unsigned(self, client: AsyncClient, owner, active_pet, owner_headers):
        response = await create_record(client, owner_headers, active_pet)

        assert response.status_code == 201
        data = response.json()
        assert data['vet_signature'] is None
        assert data['creator']['id'] == owner.id
        assert data['created_in_clinic_id'] is None
        assert data['pet_specie'] == 'DOG'

    @pytest.mark.asyncio
    async def test_vet_record_is_signed(self, client: AsyncClient, clinic, vet, active_pet, vet_headers, vet_keys):
        response = await create_record(client, vet_headers, active_pet,
                                       vet_private_key_password=vet_keys['password'])

        assert response.status_code == 201
        data = response.json()
        assert data['created_in_clinic_id'] == clinic.id
        signed = (
            f"petId={active_pet.id}|vetId={vet.id}|vetClinicId={clinic.id}|vetLicense={vet.license_number}|"
            f"recordType=ANNUAL_CHECK|description=Healthy|"
        )
        assert signing_service.verify_signature(vet_keys['public_pem'], signed, data['vet_signature'])

    @pytest.mark.asyncio
    async def test_vet_needs_key_password(self, client: AsyncClient, active_pet, vet_headers):
        response = await create_record(client, vet_headers, active_pet)

        assert response.status_code == 400
        assert response.json()['error']['details'] == {'field': 'vet_private_key_password'}

    @pytest.mark.asyncio
    async def test_vaccine_record(self, client: AsyncClient, active_pet, vet_headers, vet_keys):
        response = await create_record(client, vet_headers, active_pet, type='VACCINE', vaccine=vaccine(),
                                       vet_private_key_password=vet_keys['password'])

        assert response.status_code == 201
        assert response.json()['vaccine']['is_rabies_vaccine'] is True

    @pytest.mark.asyncio
    async def test_vaccine_details_required(self, client: AsyncClient, active_pet, owner_headers):
        response = await create_record(client, owner_headers, active_pet, type='VACCINE')

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_vaccine_details_only_for_vaccines(self, client: AsyncClient, active_pet, owner_headers):
        response = await create_record(client, owner_headers, active_pet, vaccine=vaccine())

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_vet_of_other_clinic_denied(self, client: AsyncClient, active_pet, other_vet, headers_for,
                                              vet_keys):
        response = await create_record(client, headers_for(other_vet), active_pet,
                                       vet_private_key_password=vet_keys['password'])

        assert response.status_code == 403


class TestReadRecords:

    @pytest.mark.asyncio
    async def test_list_for_pet(self, client: AsyncClient, active_pet, owner_headers, vet_headers, vet_keys):
        await create_record(client, owner_headers, active_pet)
        await create_record(client, vet_headers, active_pet, vet_private_key_password=vet_keys['password'])

        response = await client.get('/api/records', headers=owner_headers, params={'pet_id': active_pet.id})

        assert response.status_code == 200
        assert response.json()['total'] == 2

    @pytest.mark.asyncio
    async def test_get_record_other_owner(self, client: AsyncClient, active_pet, owner_headers, other_owner,
                                          headers_for):
        record = (await create_record(client, owner_headers, active_pet)).json()

        response = await client.get(f"/api/records/{record['id']}", headers=headers_for(other_owner))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_created_by_clinic(self, client: AsyncClient, clinic, active_pet, owner_headers, vet_headers,
                                     admin_headers, vet_keys):
        await create_record(client, owner_headers, active_pet)
        signed = (await create_record(client, vet_headers, active_pet,
                                      vet_private_key_password=vet_keys['password'])).json()

        response = await client.get(f'/api/records/clinic/{clinic.id}/created-by', headers=admin_headers)

        assert [r['id'] for r in response.json()['items']] == [signed['id']]

    @pytest.mark.asyncio
    async def test_created_by_other_clinic(self, client: AsyncClient, other_clinic, admin_headers):
        response = await client.get(f'/api/records/clinic/{other_clinic.id}/created-by', headers=admin_headers)

        assert response.status_code == 403


class TestUpdateRecord:

    @pytest.mark.asyncio
    async def test_update_unsigned(self, client: AsyncClient, active_pet, owner_headers):
        record = (await create_record(client, owner_headers, active_pet)).json()

        response = await client.put(f"/api/records/{record['id']}", headers=owner_headers,
                                    json={'type': 'ILLNESS', 'description': 'Limping'})

        assert response.status_code == 200
        assert response.json()['type'] == 'ILLNESS'
        assert response.json()['description'] == 'Limping'

    @pytest.mark.asyncio
    async def test_signed_record_locked(self, client: AsyncClient, active_pet, vet_headers, vet_keys):
        record = (await create_record(client, vet_headers, active_pet,
                                      vet_private_key_password=vet_keys['password'])).json()

        response = await client.put(f"/api/records/{record['id']}", headers=vet_headers,
                                    json={'description': 'Edited'})

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'RECORD_SIGNED'

    @pytest.mark.asyncio
    async def test_vaccine_record_locked(self, client: AsyncClient, active_pet, owner_headers):
        record = (await create_record(client, owner_headers, active_pet, type='VACCINE',
                                      vaccine=vaccine())).json()

        response = await client.put(f"/api/records/{record['id']}", headers=owner_headers,
                                    json={'description': 'Edited'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_cannot_become_vaccine(self, client: AsyncClient, active_pet, owner_headers):
        record = (await create_record(client, owner_headers, active_pet)).json()

        response = await client.put(f"/api/records/{record['id']}", headers=owner_headers,
                                    json={'type': 'VACCINE'})

        assert response.status_code == 400


class TestDeleteRecord:

    @pytest.mark.asyncio
    async def test_creator_deletes_unsigned(self, client: AsyncClient, active_pet, owner_headers):
        record = (await create_record(client, owner_headers, active_pet)).json()

        response = await client.delete(f"/api/records/{record['id']}", headers=owner_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/records/{record['id']}", headers=owner_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_signing_vet_deletes_signed(self, client: AsyncClient, active_pet, vet_headers, vet_keys):
        record = (await create_record(client, vet_headers, active_pet, type='VACCINE', vaccine=vaccine(),
                                      vet_private_key_password=vet_keys['password'])).json()

        response = await client.delete(f"/api/records/{record['id']}", headers=vet_headers)

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_owner_cannot_delete_signed(self, client: AsyncClient, active_pet, owner_headers,
                                              vet_headers, vet_keys):
        record = (await create_record(client, vet_headers, active_pet,
                                      vet_private_key_password=vet_keys['password'])).json()

        response = await client.delete(f"/api/records/{record['id']}", headers=owner_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_immutable_record(self, client: AsyncClient, db_session, active_pet, vet_headers, vet_keys):
        created = (await create_record(client, vet_headers, active_pet,
                                       vet_private_key_password=vet_keys['password'])).json()
        record = await db_session.get(Record, created['id'])
        record.is_immutable = True
        await db_session.commit()

        response = await client.delete(f"/api/records/{created['id']}", headers=vet_headers)

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'RECORD_IMMUTABLE'


class TestTemporaryAccess:

    @pytest.mark.asyncio
    async def test_token_reads_signed_records_only(self, client: AsyncClient, active_pet, owner_headers,
                                                   vet_headers, vet_keys):
        await create_record(client, owner_headers, active_pet)
        signed = (await create_record(client, vet_headers, active_pet,
                                      vet_private_key_password=vet_keys['password'])).json()

        response = await client.post(f'/api/records/{active_pet.id}/temporary-access', headers=owner_headers,
                                     json={'duration_string': 'PT1H'})
        assert response.status_code == 200
        token = response.json()['token']

        response = await client.get('/api/records/verify-temporary-access', params={'token': token})

        assert response.status_code == 200
        assert [r['id'] for r in response.json()] == [signed['id']]

    @pytest.mark.asyncio
    async def test_duration_is_capped(self, client: AsyncClient, active_pet, owner_headers):
        response = await client.post(f'/api/records/{active_pet.id}/temporary-access', headers=owner_headers,
                                     json={'duration_string': 'P30D'})

        assert response.status_code == 200
        claims = decode_jwt(response.json()['token'])
        assert claims['exp'] - claims['iat'] == settings.TEMP_ACCESS_MAX_DAYS * 24 * 3600

    @pytest.mark.asyncio
    async def test_invalid_duration(self, client: AsyncClient, active_pet, owner_headers):
        response = await client.post(f'/api/records/{active_pet.id}/temporary-access', headers=owner_headers,
                                     json={'duration_string': 'one hour'})

        assert response.status_code == 400
        assert response.json()['error']['details'] == {'field': 'duration_string'}

    @pytest.mark.asyncio
    async def test_only_owner_shares(self, client: AsyncClient, active_pet, other_owner, headers_for):
        response = await client.post(f'/api/records/{active_pet.id}/temporary-access',
                                     headers=headers_for(other_owner), json={'duration_string': 'PT1H'})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get('/api/records/verify-temporary-access', params={'token': 'garbage'})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get('/api/records/verify-temporary-access')

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, active_pet):
        token = create_temporary_record_access_token(active_pet.id, timedelta(seconds=-5))

        response = await client.get('/api/records/verify-temporary-access', params={'token': token})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_access_token_rejected(self, client: AsyncClient, owner):
        token = create_access_token(subject=owner.id, authorities=owner.authorities)

        response = await client.get('/api/records/verify-temporary-access', params={'token': token})

        assert response.status_code == 401
