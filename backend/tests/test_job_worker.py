import asyncio
import io
import os

import pytest
from PIL import Image
from sqlalchemy import select

from conftest import ALICE_TOKEN, b64, make_png, read_all
from files_manager.errors import NotFound
from files_manager.models.job import Job
from files_manager.services.job_queue import COMPLETED, FAILED
from files_manager.services.job_worker import safe_error_message
from files_manager.services.thumbnails import THUMBNAIL_WIDTHS, make_thumbnail


async def _only_job(queue):
    async with queue._session_factory() as db:
        result = await db.execute(select(Job).where(Job.queue_name == queue.name))
        return result.scalars().one()


async def test_thumbnails_written_for_image(file_service, thumbnail_worker, container):
    original = make_png(1000, 500)
    image = await file_service.create("alice", "pic.png", "image", data=b64(original))

    assert await thumbnail_worker.run_once() is True

    for width in THUMBNAIL_WIDTHS:
        path = f"{image.local_path}_{width}"
        assert os.path.isfile(path)
        with Image.open(path) as img:
            assert img.size == (width, width // 2)
    assert (await _only_job(container.file_queue)).status == COMPLETED


async def test_variant_served_after_worker(file_service, thumbnail_worker):
    original = make_png(800, 600)
    image = await file_service.create("alice", "pic.png", "image", data=b64(original))
    await thumbnail_worker.drain()

    for width in THUMBNAIL_WIDTHS:
        content = await file_service.get_content(image.id, token=ALICE_TOKEN, size=str(width))
        assert content.content_type == "image/png"
        assert await read_all(content.chunks) == make_thumbnail(original, width)


async def test_run_once_on_empty_queue(thumbnail_worker):
    assert await thumbnail_worker.run_once() is False


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"userId": "alice"}, "Missing fileId"),
        ({"fileId": "abc"}, "Missing userId"),
        ({}, "Missing fileId"),
    ],
)
async def test_bad_payload_fails_job(container, thumbnail_worker, payload, message):
    job_id = await container.file_queue.add(payload)

    assert await thumbnail_worker.run_once() is True

    job = await container.file_queue.get(job_id)
    assert job.status == FAILED
    assert job.error_message == message


async def test_unknown_file_fails_job(container, thumbnail_worker):
    job_id = await container.file_queue.add({"fileId": "ffffffffffffffffffffffff", "userId": "alice"})
    await thumbnail_worker.run_once()

    job = await container.file_queue.get(job_id)
    assert job.error_message == "File not found"


async def test_other_owner_fails_job(file_service, container, thumbnail_worker):
    image = await file_service.create("alice", "pic.png", "image", data=b64(make_png()))
    # Drop the job queued by the upload
    await container.file_queue.claim()

    job_id = await container.file_queue.add({"fileId": image.id, "userId": "bob"})
    await thumbnail_worker.run_once()

    assert (await container.file_queue.get(job_id)).error_message == "File not found"


async def test_non_image_fails_job(file_service, container, thumbnail_worker):
    file = await file_service.create("alice", "a.txt", "file", data=b64(b"x"))
    job_id = await container.file_queue.add({"fileId": file.id, "userId": "alice"})
    await thumbnail_worker.run_once()

    assert (await container.file_queue.get(job_id)).error_message == "File is not an image"


async def test_corrupt_image_fails_and_loop_continues(file_service, container, thumbnail_worker):
    broken = await file_service.create("alice", "broken.png", "image", data=b64(b"not an image"))
    good = await file_service.create("alice", "good.png", "image", data=b64(make_png()))

    assert await thumbnail_worker.drain() == 2

    jobs = {}
    async with container.session_factory() as db:
        for job in (await db.execute(select(Job))).scalars():
            jobs[job.payload["fileId"]] = job

    assert jobs[broken.id].status == FAILED
    assert jobs[broken.id].error_message.startswith("Error generating thumbnail: ")
    assert not os.path.exists(f"{broken.local_path}_500")
    assert jobs[good.id].status == COMPLETED
    assert os.path.isfile(f"{good.local_path}_100")


async def test_started_worker_processes_in_background(file_service, container, thumbnail_worker):
    thumbnail_worker.start()
    try:
        image = await file_service.create("alice", "pic.png", "image", data=b64(make_png()))
        for _ in range(200):
            if os.path.isfile(f"{image.local_path}_100"):
                break
            await asyncio.sleep(0.02)
    finally:
        await thumbnail_worker.stop()

    assert not thumbnail_worker.running
    assert (await _only_job(container.file_queue)).status == COMPLETED


async def test_container_start_stop(container):
    await container.start()
    assert all(worker.running for worker in container.workers)

    await container.stop()
    assert not any(worker.running for worker in container.workers)


async def test_welcome_job(container, welcome_worker, registered_user, caplog):
    caplog.set_level("INFO")
    job_id = await container.user_queue.add({"userId": registered_user.id})

    await welcome_worker.run_once()

    assert (await container.user_queue.get(job_id)).status == COMPLETED
    assert "Welcome alice@example.com!" in caplog.text


@pytest.mark.parametrize(
    "payload, message",
    [
        ({}, "Missing userId"),
        ({"userId": "ffffffffffffffffffffffff"}, "User not found"),
    ],
)
async def test_welcome_job_failures(container, welcome_worker, payload, message):
    job_id = await container.user_queue.add(payload)

    await welcome_worker.run_once()

    job = await container.user_queue.get(job_id)
    assert job.status == FAILED
    assert job.error_message == message


def test_thumbnail_keeps_aspect_ratio():
    thumb = make_thumbnail(make_png(400, 300), 100)

    with Image.open(io.BytesIO(thumb)) as img:
        assert img.format == "PNG"
        assert img.size == (100, 75)


def test_thumbnail_rejects_garbage():
    with pytest.raises(Exception):
        make_thumbnail(b"garbage", 100)


def test_safe_error_message_falls_back_to_class_name():
    assert safe_error_message(ValueError("")) == "ValueError: Job failed"
    assert safe_error_message(ValueError("bad")) == "bad"


async def test_failed_width_leaves_earlier_variants(file_service, container, thumbnail_worker, monkeypatch):
    def fail_at_250(image_bytes, width):
        if width == 250:
            raise OSError("disk full")
        return make_thumbnail(image_bytes, width)

    monkeypatch.setattr("files_manager.services.job_worker.make_thumbnail", fail_at_250)
    image = await file_service.create("alice", "pic.png", "image", data=b64(make_png()))

    await thumbnail_worker.run_once()

    assert os.path.isfile(f"{image.local_path}_500")
    assert not os.path.exists(f"{image.local_path}_250")
    assert not os.path.exists(f"{image.local_path}_100")

    job = await _only_job(container.file_queue)
    assert job.status == FAILED
    assert job.error_message == "Error generating thumbnail: disk full"

    content = await file_service.get_content(image.id, token=ALICE_TOKEN, size="500")
    assert await read_all(content.chunks) == make_thumbnail(make_png(), 500)
    with pytest.raises(NotFound):
        await file_service.get_content(image.id, token=ALICE_TOKEN, size="250")


async def test_original_read_once_per_job(file_service, container, thumbnail_worker, monkeypatch):
    reads = []
    read = container.storage.read

    async def counting_read(path):
        reads.append(path)
        return await read(path)

    monkeypatch.setattr(container.storage, "read", counting_read)
    image = await file_service.create("alice", "pic.png", "image", data=b64(make_png()))

    await thumbnail_worker.run_once()

    assert reads == [image.local_path]
    assert (await _only_job(container.file_queue)).status == COMPLETED


async def test_unreadable_original_fails_job(file_service, container, thumbnail_worker):
    image = await file_service.create("alice", "pic.png", "image", data=b64(make_png()))
    os.remove(image.local_path)

    await thumbnail_worker.run_once()

    job = await _only_job(container.file_queue)
    assert job.status == FAILED
    assert job.error_message.startswith("Error generating thumbnail: ")
