"""
Unit Tests for Authentication API Endpoints
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient
from faker import Faker
from sqlalchemy import select

from app.core.security import decode_jwt, verify_password
from app.core.types import utcnow
from app.models.password_reset_token import PasswordResetToken

fake = Faker()


def registration(**overrides) -> dict:
    data = {
        'username': fake.unique.user_name()[:40],
        'email': fake.unique.email(),
        'password': 'securePassword123',
        'phone': '600111222',
    }
    data.update(overrides)
    return data


class TestOwnerRegistration:
    """Test owner registration endpoint"""

    @pytest.mark.asyncio
    async def test_register_success(self, client: AsyncClient):
        user_data = registration()

        response = await client.post('/api/auth/register', json=user_data)

        assert response.status_code == 201
        data = response.json()
        assert data['username'] == user_data['username']
        assert data['email'] == user_data['email']
        assert data['phone'] == '600111222'
        assert data['roles'] == ['OWNER']
        assert data['avatar'] == 'images/avatars/users/owner.png'
        assert 'password' not in data and 'password_hash' not in data

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, owner):
        response = await client.post('/api/auth/register', json=registration(email=owner.email))

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'EMAIL_EXISTS'

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, client: AsyncClient, owner):
        response = await client.post('/api/auth/register', json=registration(username=owner.username))

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'USERNAME_EXISTS'

    @pytest.mark.asyncio
    async def test_email_checked_before_username(self, client: AsyncClient, owner):
        response = await client.post(
            '/api/auth/register', json=registration(email=owner.email, username=owner.username)
        )

        assert response.json()['error']['code'] == 'EMAIL_EXISTS'

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, client: AsyncClient):
        response = await client.post('/api/auth/register', json=registration(email='not-an-email'))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post('/api/auth/register', json=registration(password='123'))

        assert response.status_code == 422


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_with_username(self, client: AsyncClient, owner):
        response = await client.post('/api/auth/login', json={'username': owner.username, 'password': 'testpassword123'})

        assert response.status_code == 200
        data = response.json()
        assert data['username'] == owner.username
        assert data['status'] is True
        claims = decode_jwt(data['jwt'])
        assert claims['sub'] == owner.id
        assert 'ROLE_OWNER' in claims['authorities']
        assert 'PET_CREATE_OWN' in claims['authorities']

    @pytest.mark.asyncio
    async def test_login_with_email(self, client: AsyncClient, owner):
        response = await client.post('/api/auth/login', json={'username': owner.email, 'password': 'testpassword123'})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, owner):
        response = await client.post('/api/auth/login', json={'username': owner.username, 'password': 'wrong'})

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'AUTH_FAILED'

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, client: AsyncClient):
        response = await client.post('/api/auth/login', json={'username': 'ghost', 'password': 'whatever'})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_staff_cannot_login(self, client: AsyncClient, db_session, admin):
        admin.is_active = False
        await db_session.commit()

        response = await client.post('/api/auth/login', json={'username': admin.username, 'password': 'testpassword123'})

        assert response.status_code == 401


class TestPasswordReset:

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_is_neutral(self, client: AsyncClient, db_session):
        response = await client.post('/api/auth/forgot-password', json={'email': 'nobody@example.com'})

        assert response.status_code == 200
        assert response.json()['success'] is True
        tokens = (await db_session.execute(select(PasswordResetToken))).scalars().all()
        assert tokens == []

    @pytest.mark.asyncio
    async def test_forgot_password_replaces_previous_token(self, client: AsyncClient, db_session, owner):
        await client.post('/api/auth/forgot-password', json={'email': owner.email})
        response = await client.post('/api/auth/forgot-password', json={'email': owner.email})

        assert response.status_code == 200
        tokens = (await db_session.execute(
            select(PasswordResetToken).where(PasswordResetToken.user_id == owner.id)
        )).scalars().all()
        assert len(tokens) == 1

    @pytest.mark.asyncio
    async def test_reset_password(self, client: AsyncClient, db_session, owner):
        db_session.add(PasswordResetToken(token='reset-token-1', user=owner,
                                          expiry_date=utcnow() + timedelta(hours=1)))
        await db_session.commit()

        response = await client.post('/api/auth/reset-password', json={
            'token': 'reset-token-1', 'new_password': 'brandNewPass1', 'confirm_password': 'brandNewPass1',
        })

        assert response.status_code == 200
        assert verify_password('brandNewPass1', owner.password_hash)
        remaining = (await db_session.execute(select(PasswordResetToken))).scalars().all()
        assert remaining == []

    @pytest.mark.asyncio
    async def test_reset_password_mismatch(self, client: AsyncClient):
        response = await client.post('/api/auth/reset-password', json={
            'token': 'whatever', 'new_password': 'brandNewPass1', 'confirm_password': 'different1',
        })

        assert response.status_code == 400
        assert response.json()['error']['details'] == {'field': 'confirm_password'}

    @pytest.mark.asyncio
    async def test_reset_password_unknown_token(self, client: AsyncClient):
        response = await client.post('/api/auth/reset-password', json={
            'token': 'nope', 'new_password': 'brandNewPass1', 'confirm_password': 'brandNewPass1',
        })

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_RESET_TOKEN'

    @pytest.mark.asyncio
    async def test_reset_password_expired_token(self, client: AsyncClient, db_session, owner):
        db_session.add(PasswordResetToken(token='old-token', user=owner,
                                          expiry_date=utcnow() - timedelta(minutes=1)))
        await db_session.commit()

        response = await client.post('/api/auth/reset-password', json={
            'token': 'old-token', 'new_password': 'brandNewPass1', 'confirm_password': 'brandNewPass1',
        })

        assert response.status_code == 400
        remaining = (await db_session.execute(select(PasswordResetToken))).scalars().all()
        assert remaining == []
