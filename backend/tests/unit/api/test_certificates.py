"""
Unit Tests for Health Certificate API Endpoints
"""
import json
from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.core.types import utcnow
from app.models.record import Record
from app.services.hashing_service import hashing_service
from app.services.signing_service import signing_service


async def signed_record(client, headers, pet, password, record_type='ANNUAL_CHECK', vaccine=None):
    body = {
        'pet_id': pet.id,
        'type': record_type,
        'description': 'Clinical exam',
        'vet_private_key_password': password,
    }
    if vaccine is not None:
        body['vaccine'] = vaccine
    response = await client.post('/api/records', headers=headers, json=body)
    assert response.status_code == 201
    return response.json()


async def rabies_record(client, headers, pet, password, validity=3):
    return await signed_record(client, headers, pet, password, record_type='VACCINE', vaccine={
        'name': 'Rabisin', 'validity': validity, 'laboratory': 'Boehringer',
        'batch_number': 'RB-77', 'is_rabies_vaccine': True,
    })


def generation(pet, number='AHC-2025-0001', vet_password='', clinic_password='') -> dict:
    return {
        'pet_id': pet.id,
        'certificate_number': number,
        'vet_private_key_password': vet_password,
        'clinic_private_key_password': clinic_password,
    }


@pytest.fixture
def passwords(vet_keys, clinic_keys) -> dict:
    return {'vet_password': vet_keys['password'], 'clinic_password': clinic_keys['password']}


@pytest.fixture
async def eligible_pet(client, active_pet, vet_headers, vet_keys):
    """Active pet with a signed rabies vaccination and a fresh annual check-up"""
    await rabies_record(client, vet_headers, active_pet, vet_keys['password'])
    await signed_record(client, vet_headers, active_pet, vet_keys['password'])
    return active_pet


class TestGenerateCertificate:

    @pytest.mark.asyncio
    async def test_generate(self, client: AsyncClient, clinic, vet, eligible_pet, vet_headers,
                            vet_keys, clinic_keys, passwords):
        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(eligible_pet, **passwords))

        assert response.status_code == 201
        cert = response.json()
        assert cert['issuing_clinic']['id'] == clinic.id
        assert cert['generator_vet']['id'] == vet.id
        assert cert['originating_record']['type'] == 'VACCINE'
        assert cert['originating_record']['is_immutable'] is True

        payload = json.loads(cert['payload'])
        assert payload['certificateNumber'] == 'AHC-2025-0001'
        assert payload['issuer']['id'] == clinic.id
        assert payload['issuer']['country'] == clinic.country.value
        assert payload['subject']['ownerInfo'] == {'id': eligible_pet.owner_id}
        assert payload['event']['vaccinationDetails']['batch'] == 'RB-77'
        assert payload['subject']['petId'] == eligible_pet.id
        assert payload['event']['vaccinationDetails']['validityYears'] == 3

        assert cert['hash'] == hashing_service.hash_string(cert['payload'])
        assert signing_service.verify_signature(vet_keys['public_pem'], cert['hash'], cert['vet_signature'])
        assert signing_service.verify_signature(clinic_keys['public_pem'], cert['hash'], cert['clinic_signature'])

    @pytest.mark.asyncio
    async def test_clears_pending_request(self, client: AsyncClient, clinic, eligible_pet, owner_headers,
                                          vet_headers, passwords):
        await client.post(f'/api/pets/{eligible_pet.id}/request-certificate/{clinic.id}', headers=owner_headers)

        await client.post('/api/certificates', headers=vet_headers, json=generation(eligible_pet, **passwords))

        response = await client.get(f'/api/pets/{eligible_pet.id}', headers=owner_headers)
        assert response.json()['pending_certificate_clinic_id'] is None

    @pytest.mark.asyncio
    async def test_missing_rabies_vaccine(self, client: AsyncClient, active_pet, vet_headers, vet_keys, passwords):
        await signed_record(client, vet_headers, active_pet, vet_keys['password'])

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(active_pet, **passwords))

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'MISSING_RABIES_VACCINE'

    @pytest.mark.asyncio
    async def test_expired_rabies_vaccine(self, client: AsyncClient, db_session, active_pet, vet_headers,
                                          vet_keys, passwords):
        vaccination = await rabies_record(client, vet_headers, active_pet, vet_keys['password'], validity=1)
        record = await db_session.get(Record, vaccination['id'])
        record.created_at = utcnow() - timedelta(days=800)
        await db_session.commit()
        await signed_record(client, vet_headers, active_pet, vet_keys['password'])

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(active_pet, **passwords))

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'MISSING_RABIES_VACCINE'

    @pytest.mark.asyncio
    async def test_unsigned_rabies_vaccine_ignored(self, client: AsyncClient, active_pet, owner_headers,
                                                   vet_headers, vet_keys, passwords):
        await client.post('/api/records', headers=owner_headers, json={
            'pet_id': active_pet.id, 'type': 'VACCINE',
            'vaccine': {'name': 'Rabisin', 'validity': 3, 'batch_number': 'RB-1', 'is_rabies_vaccine': True},
        })
        await signed_record(client, vet_headers, active_pet, vet_keys['password'])

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(active_pet, **passwords))

        assert response.json()['error']['code'] == 'MISSING_RABIES_VACCINE'

    @pytest.mark.asyncio
    async def test_missing_checkup(self, client: AsyncClient, active_pet, vet_headers, vet_keys, passwords):
        await rabies_record(client, vet_headers, active_pet, vet_keys['password'])

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(active_pet, **passwords))

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'MISSING_RECENT_CHECKUP'

    @pytest.mark.asyncio
    async def test_outdated_checkup(self, client: AsyncClient, db_session, active_pet, vet_headers,
                                    vet_keys, passwords):
        await rabies_record(client, vet_headers, active_pet, vet_keys['password'])
        checkup = await signed_record(client, vet_headers, active_pet, vet_keys['password'])
        record = await db_session.get(Record, checkup['id'])
        record.created_at = utcnow() - timedelta(days=400)
        await db_session.commit()

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(active_pet, **passwords))

        assert response.json()['error']['code'] == 'MISSING_RECENT_CHECKUP'

    @pytest.mark.asyncio
    async def test_one_certificate_per_record(self, client: AsyncClient, eligible_pet, vet_headers, passwords):
        await client.post('/api/certificates', headers=vet_headers, json=generation(eligible_pet, **passwords))

        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(eligible_pet, number='AHC-2025-0002', **passwords))

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'CERTIFICATE_EXISTS_FOR_RECORD'

    @pytest.mark.asyncio
    async def test_wrong_clinic_password(self, client: AsyncClient, eligible_pet, vet_headers, vet_keys):
        response = await client.post('/api/certificates', headers=vet_headers, json=generation(
            eligible_pet, vet_password=vet_keys['password'], clinic_password='not-the-password'
        ))

        assert response.status_code == 500
        assert response.json()['error']['code'] == 'SIGNING_ERROR'

    @pytest.mark.asyncio
    async def test_admin_cannot_generate(self, client: AsyncClient, eligible_pet, admin_headers, passwords):
        response = await client.post('/api/certificates', headers=admin_headers,
                                     json=generation(eligible_pet, **passwords))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_certified_record_cannot_be_deleted(self, client: AsyncClient, eligible_pet, vet_headers,
                                                      passwords):
        cert = (await client.post('/api/certificates', headers=vet_headers,
                                  json=generation(eligible_pet, **passwords))).json()

        response = await client.delete(f"/api/records/{cert['originating_record']['id']}", headers=vet_headers)

        assert response.status_code == 409


class TestReadCertificates:

    @pytest.fixture
    async def certificate(self, client, eligible_pet, vet_headers, passwords) -> dict:
        response = await client.post('/api/certificates', headers=vet_headers,
                                     json=generation(eligible_pet, **passwords))
        return response.json()

    @pytest.mark.asyncio
    async def test_list_for_pet(self, client: AsyncClient, certificate, eligible_pet, owner_headers):
        response = await client.get('/api/certificates', headers=owner_headers, params={'pet_id': eligible_pet.id})

        assert [c['id'] for c in response.json()] == [certificate['id']]

    @pytest.mark.asyncio
    async def test_get_by_id(self, client: AsyncClient, certificate, owner_headers):
        response = await client.get(f"/api/certificates/{certificate['id']}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()['certificate_number'] == certificate['certificate_number']

    @pytest.mark.asyncio
    async def test_other_owner_denied(self, client: AsyncClient, certificate, other_owner, headers_for):
        response = await client.get(f"/api/certificates/{certificate['id']}", headers=headers_for(other_owner))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_qr_data(self, client: AsyncClient, certificate, owner_headers):
        response = await client.get(f"/api/certificates/{certificate['id']}/qr-data", headers=owner_headers)

        assert response.status_code == 200
        assert response.text.startswith('HC1:')

    @pytest.mark.asyncio
    async def test_qr_image(self, client: AsyncClient, certificate, owner_headers):
        response = await client.get(f"/api/certificates/{certificate['id']}/qr-image", headers=owner_headers)

        assert response.headers['content-type'] == 'image/png'
        assert response.content.startswith(b'\x89PNG')

    @pytest.mark.asyncio
    async def test_clinic_list_with_filters(self, client: AsyncClient, clinic, certificate, admin_headers):
        response = await client.get(f'/api/certificates/clinic/{clinic.id}', headers=admin_headers,
                                    params={'certificate_number': '2025'})
        assert response.json()['total'] == 1

        response = await client.get(f'/api/certificates/clinic/{clinic.id}', headers=admin_headers,
                                    params={'pet_name': 'no-such-pet'})
        assert response.json()['total'] == 0

    @pytest.mark.asyncio
    async def test_clinic_list_other_clinic(self, client: AsyncClient, other_clinic, certificate, admin_headers):
        response = await client.get(f'/api/certificates/clinic/{other_clinic.id}', headers=admin_headers)

        assert response.status_code == 403
