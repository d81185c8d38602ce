"""Tests for year configuration and monthly row population."""

from datetime import date

import pytest

from ashram_dashboard.errors import ConflictError, InvalidRequestError, NotFoundError
from ashram_dashboard.models import MonthlySync, YearConfig
from ashram_dashboard.services.year_config_service import YearConfigService


def _rows(db, year):
    return db.session.query(MonthlySync).filter_by(year=year).count()


def test_add_year_creates_twelve_rows_per_bhakt(seeded, db):
    config, created = YearConfigService().add_year(2027)

    assert config.year == 2027 and config.is_active is True
    assert created == 24
    assert _rows(db, 2027) == 24
    assert db.session.query(MonthlySync).filter_by(year=2027, is_paid=True).count() == 0


@pytest.mark.parametrize('year', [2019, 2051, 'abc', None])
def test_add_year_rejects_out_of_range(db, year):
    with pytest.raises(InvalidRequestError, match='between 2020 and 2050'):
        YearConfigService().add_year(year)


def test_add_year_rejects_duplicate(seeded):
    with pytest.raises(ConflictError, match='already exists'):
        YearConfigService().add_year(2026)


def test_sync_only_fills_missing_bhakts(seeded, db):
    service = YearConfigService()

    # Both seeded bhakts already have a 2026 row
    assert service.sync_bhakts_for_year(2026) == 0
    assert service.sync_bhakts_for_year(2028) == 24
    assert service.sync_bhakts_for_year(2028) == 0


def test_delete_year_removes_its_rows(seeded, db):
    service = YearConfigService()
    service.add_year(2027)

    removed = service.delete_year(2027)

    assert removed == 24
    assert _rows(db, 2027) == 0
    assert _rows(db, 2026) == 2
    assert db.session.query(YearConfig).filter_by(year=2027).first() is None


def test_delete_unknown_year(db):
    with pytest.raises(NotFoundError):
        YearConfigService().delete_year(2030)


def test_active_years_and_toggle(seeded):
    service = YearConfigService()
    service.add_year(2027)

    assert service.active_years() == [2026, 2027]
    service.set_year_active(2026, False)
    assert service.active_years() == [2027]


def test_active_years_defaults_to_current_year(db):
    assert YearConfigService().active_years() == [date.today().year]


def test_populate_monthly_sync_covers_active_years(seeded, db):
    db.session.add(YearConfig(year=2029, is_active=True))
    db.session.add(YearConfig(year=2030, is_active=False))
    db.session.commit()

    result = YearConfigService().populate_monthly_sync()

    assert result == {2026: 0, 2029: 24}
    assert _rows(db, 2030) == 0


def test_years_endpoints(client, seeded, db):
    response = client.post('/api/years', json={'year': 2027})
    assert response.status_code == 201
    assert response.get_json()['monthly_rows_created'] == 24

    assert client.post('/api/years', json={'year': 2027}).status_code == 409
    assert client.post('/api/years', json={'year': 1999}).status_code == 400

    years = client.get('/api/years').get_json()['years']
    assert [y['year'] for y in years] == [2026, 2027]

    response = client.patch('/api/years/2027', json={'is_active': False})
    assert response.get_json()['year'] == {'year': 2027, 'is_active': False}
    assert client.patch('/api/years/2027', json={}).status_code == 400

    response = client.post('/api/years/2031/sync')
    assert response.get_json()['monthly_rows_created'] == 24

    response = client.delete('/api/years/2027')
    assert response.get_json() == {'success': True, 'monthly_rows_removed': 24}
    assert client.delete('/api/years/2027').status_code == 404
