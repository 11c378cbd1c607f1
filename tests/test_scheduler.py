from housing_admin.baas.provider import BaaSError
from housing_admin.config import settings
from housing_admin.services.scheduler import CheckoutSweeper


def test_run_once_completes_expired(baas):
    baas.create_document(settings.checkout_requests_collection_id, {
        "status": "approved", "endDate": "2020-01-01T00:00:00Z",
    })
    assert CheckoutSweeper(lambda: baas, interval_s=60).run_once() == 1


def test_run_once_survives_backend_errors():
    class Down:
        def list_all(self, collection_id, queries=()):
            raise BaaSError("unavailable", code=503)

    assert CheckoutSweeper(lambda: Down(), interval_s=60).run_once() == 0


def test_start_and_stop(baas):
    sweeper = CheckoutSweeper(lambda: baas, interval_s=3600)
    sweeper.start()
    assert sweeper.running
    sweeper.stop()
    assert not sweeper.running
