import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from wards.exceptions import AuthorizationError
from wards.models import AuditEvent, User
from wards.services.access import WardAccess, grant_ward_access, require_access
from wards.services.stats import get_occupancy_stats

pytestmark = pytest.mark.django_db


def login(client, username, password):
    r = client.post(reverse('login_view'), {'username': username, 'password': password}, format='json')
    assert r.status_code in (200, 400, 401)
    return r


def test_no_role_bypass_in_login():
    client = APIClient()
    u = User.objects.create_user(username='u1', password='P@ssw0rd1', role='patient')
    r = client.post(reverse('login_view'), {'username': 'u1', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'
    u.refresh_from_db()
    assert u.role == 'patient'
    # the token still does not open the ward API
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('bed_list')).status_code == 403


def test_bad_password_is_rejected_and_audited():
    User.objects.create_user(username='staff1', password='P@ssw0rd1', role='staff')
    r = login(APIClient(), 'staff1', 'wrong')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert r.data['error']['code'] == 'invalid_credentials'
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_login_returns_jwt_and_legacy_token():
    client = APIClient()
    User.objects.create_user(username='u_jwt', password='P@ssw0rd1', role='staff')
    r = login(client, 'u_jwt', 'P@ssw0rd1')
    assert r.status_code == 200
    assert 'jwt_access' in r.data and r.data['jwt_access']
    assert 'jwt_refresh' in r.data and r.data['jwt_refresh']
    assert 'token' in r.data and r.data['token']


def test_token_and_bearer_both_authenticate():
    User.objects.create_user(username='nurse', password='P@ssw0rd1', role='staff')
    r = login(APIClient(), 'nurse', 'P@ssw0rd1')

    token_client = APIClient()
    token_client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert token_client.get(reverse('bed_list')).status_code == 200

    jwt_client = APIClient()
    jwt_client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    resp = jwt_client.get(reverse('occupancy_stats'))
    assert resp.status_code == 200
    assert resp.data['data']['totalBeds'] == 0


def test_refresh_and_logout_blacklists_refresh_token():
    User.objects.create_user(username='doc', password='P@ssw0rd1', role='doctor')
    r = login(APIClient(), 'doc', 'P@ssw0rd1')
    refresh = r.data['jwt_refresh']

    client = APIClient()
    resp = client.post(reverse('jwt_refresh_view'), {'refresh': refresh}, format='json')
    assert resp.status_code == 200
    assert resp.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    resp = client.post(reverse('jwt_logout_view'), {'refresh': refresh}, format='json')
    assert resp.status_code == 200
    assert resp.data['blacklisted'] == 1

    resp = APIClient().post(reverse('jwt_refresh_view'), {'refresh': refresh}, format='json')
    assert resp.status_code == 401


def test_grant_ward_access_by_role():
    for role in ('admin', 'doctor', 'staff'):
        user = User.objects.create_user(username=f'{role}-x', password='x', role=role)
        ctx = grant_ward_access(user)
        assert isinstance(ctx, WardAccess)
        assert ctx.role == role
        assert ctx.user_id == user.id

    patient = User.objects.create_user(username='p-x', password='x', role='patient')
    with pytest.raises(AuthorizationError):
        grant_ward_access(patient)
    with pytest.raises(AuthorizationError):
        grant_ward_access(None)


def test_services_refuse_anything_but_a_capability():
    with pytest.raises(AuthorizationError):
        require_access('admin')
    with pytest.raises(AuthorizationError):
        get_occupancy_stats(None)


def test_healthz_reports_db_and_cache(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200
    body = resp.json()
    assert body == {'ok': True, 'db': True, 'cache': True}
