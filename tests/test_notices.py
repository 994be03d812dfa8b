"""
Notice board (avisos).
"""
from datetime import timedelta

import pytest

from portal.errors import PermissionDenied
from portal.models.notice import NoticeData, NoticeImage


def image():
    return NoticeImage(file_name="cartaz festa junina.png", content_type="image/png", data=b"\x89PNG...")


class TestNoticeService:

    def test_create_text_notice(self, services, admin, clock):
        notice_id = services.notices.create_notice(admin, NoticeData(title="Reunião de pais", content="Sábado"))

        notice = services.notices.get_notice(notice_id)
        assert notice.created_by == admin.email
        assert notice.created_at == clock.now
        assert notice.is_active

    def test_image_is_uploaded_under_notice_path(self, services, admin, store):
        notice_id = services.notices.create_notice(admin, NoticeData(type="image", title="Festa"), image())

        notice = services.notices.get_notice(notice_id)
        assert notice.image_path.startswith(f"avisos/{notice_id}/")
        assert notice.image_path.endswith("_cartaz_festa_junina.png")
        assert notice.image_url == f"memory://{notice.image_path}"
        assert store.has_file(notice.image_path)

    def test_replacing_image_deletes_old_blob(self, services, admin, store, clock):
        notice_id = services.notices.create_notice(admin, NoticeData(type="image", title="Festa"), image())
        old_path = services.notices.get_notice(notice_id).image_path
        clock.advance(seconds=5)

        services.notices.update_notice(admin, notice_id, NoticeData(type="image", title="Festa junina"), image())

        notice = services.notices.get_notice(notice_id)
        assert notice.title == "Festa junina"
        assert notice.updated_by == admin.email
        assert not store.has_file(old_path)
        assert store.has_file(notice.image_path)

    def test_delete_removes_blob(self, services, admin, store):
        notice_id = services.notices.create_notice(admin, NoticeData(type="image", title="Festa"), image())
        path = services.notices.get_notice(notice_id).image_path

        services.notices.delete_notice(admin, notice_id)

        assert services.notices.get_all_notices() == []
        assert not store.has_file(path)

    def test_active_notices_by_priority_then_newest(self, services, admin, clock):
        services.notices.create_notice(admin, NoticeData(title="baixa", priority="low"))
        clock.advance(minutes=1)
        services.notices.create_notice(admin, NoticeData(title="alta antiga", priority="high"))
        clock.advance(minutes=1)
        services.notices.create_notice(admin, NoticeData(title="alta nova", priority="high"))
        hidden = services.notices.create_notice(admin, NoticeData(title="inativo", priority="high"))
        services.notices.deactivate_notice(admin, hidden)

        titles = [n.title for n in services.notices.get_active_notices()]

        assert titles == ["alta nova", "alta antiga", "baixa"]

    def test_subscription_sees_changes_until_unsubscribed(self, services, admin):
        seen = []
        unsubscribe = services.notices.subscribe_active(lambda notices: seen.append([n.title for n in notices]))
        services.notices.create_notice(admin, NoticeData(title="Primeiro"))
        unsubscribe()
        services.notices.create_notice(admin, NoticeData(title="Segundo"))

        assert seen == [[], ["Primeiro"]]

    def test_cleanup_expired(self, services, admin, clock):
        expiring = services.notices.create_notice(
            admin, NoticeData(title="Matrículas", expires_at=clock.now + timedelta(days=1)))
        services.notices.create_notice(admin, NoticeData(title="Permanente"))

        assert services.notices.cleanup_expired() == 0
        clock.advance(days=2)
        assert services.notices.cleanup_expired() == 1

        assert not services.notices.get_notice(expiring).is_active
        assert [n.title for n in services.notices.get_active_notices()] == ["Permanente"]

    def test_requires_permission(self, services, alice):
        with pytest.raises(PermissionDenied):
            services.notices.create_notice(alice, NoticeData(title="Oi"))
