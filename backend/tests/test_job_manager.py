"""
Tests for background jobs and their captured logs
"""
import logging
import threading

from utils.job_manager import GenerationJob, JobManager

logger = logging.getLogger('pptx_engine.jobs_test')
logger.setLevel(logging.INFO)


def test_job_log_only_holds_its_own_thread():
    manager = JobManager()
    first, second = manager.create('generate', {}), manager.create('generate', {})
    both_started = threading.Barrier(2)
    both_logged = threading.Barrier(2)

    def _work(job):
        both_started.wait(timeout=5)
        logger.info(f'working on {job.id}')
        both_logged.wait(timeout=5)

    threads = [manager.run(job, _work, lambda job, exc: None) for job in (first, second)]
    for thread in threads:
        thread.join(timeout=5)

    assert first.status == second.status == 'succeeded'
    assert len(first.logs) == 1 and first.id in first.logs[0]
    assert len(second.logs) == 1 and second.id in second.logs[0]


def test_handler_ignores_other_threads():
    job = GenerationJob('generate', {})
    handler = JobManager().attach_logger_handler(job, thread_id=threading.get_ident() + 1)
    handler.handle(logger.makeRecord(logger.name, logging.INFO, __file__, 1, 'elsewhere', None, None))
    assert job.logs == []


def test_failed_job_records_error_in_its_log():
    manager = JobManager()
    job = manager.create('generate', {})

    def _fail(job):
        raise RuntimeError('boom')

    def _on_error(job, exc):
        job.error = {'kind': 'internal', 'message': str(exc)}
        logging.getLogger('server').error(f'Job {job.id} failed: boom')

    manager.run(job, _fail, _on_error).join(timeout=5)
    assert job.status == 'failed'
    assert job.error == {'kind': 'internal', 'message': 'boom'}
    assert any('failed: boom' in line for line in job.logs)


def test_finished_jobs_expire():
    manager = JobManager(ttl_seconds=60)
    done = manager.create('generate', {})
    done.content = b'deck'
    done.completed_at = 1000.0
    running = manager.create('generate', {})

    assert manager.evict_expired(now=1030.0) == 0
    assert manager.evict_expired(now=1061.0) == 1
    assert manager.get(done.id) is None
    assert manager.get(running.id) is running


def test_create_drops_expired_jobs():
    manager = JobManager(ttl_seconds=0)
    old = manager.create('generate', {})
    old.completed_at = 1.0
    manager.create('generate', {})
    assert manager.get(old.id) is None
    assert len(manager.list()) == 1
