"""Shared fixtures: an in-memory S3 client, bus helpers and polling."""
import threading
import time

import pytest
from botocore.exceptions import ClientError

from s3box.core.events import EventBus, is_one_of
from s3box.services.notification_repository import NotificationPublisher
from s3box.services.preferences import InMemoryPreferences
from s3box.shared.models import Level


def client_error(code: str, operation: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket, Prefix="", Delimiter="", PaginationConfig=None):
        self.client.list_calls.append({"Bucket": Bucket, "Prefix": Prefix, "Delimiter": Delimiter})
        self.client._check("list_objects_v2", Bucket)
        page_size = (PaginationConfig or {}).get("PageSize", 1000)

        prefixes, contents = [], []
        for key in sorted(k for (b, k) in self.client.objects if b == Bucket and k.startswith(Prefix)):
            rest = key[len(Prefix):]
            if Delimiter and Delimiter in rest:
                common = Prefix + rest.split(Delimiter)[0] + Delimiter
                if common not in prefixes:
                    prefixes.append(common)
                continue
            body = self.client.objects[(Bucket, key)]
            contents.append({"Key": key, "Size": len(body), "LastModified": None})

        pages = [contents[i:i + page_size] for i in range(0, len(contents), page_size)] or [[]]
        for i, chunk in enumerate(pages):
            page = {"Contents": chunk}
            if i == 0:
                page["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
            yield page


class FakeS3Client:
    """
    Minimal in-memory stand-in for a boto3 S3 client.

    ``fail_next[operation] = code`` makes the next call of that operation
    raise a ClientError with this code.
    """

    def __init__(self, buckets=("b1",)):
        self.buckets = set(buckets)
        self.objects: dict[tuple[str, str], bytes] = {}
        self.list_calls: list[dict] = []
        self.fail_next: dict[str, str] = {}
        self._lock = threading.Lock()

    def seed(self, bucket: str, key: str, body: bytes = b""):
        self.buckets.add(bucket)
        self.objects[(bucket, key)] = body

    def body(self, bucket: str, key: str) -> bytes:
        return self.objects[(bucket, key)]

    def _check(self, operation: str, bucket: str):
        code = self.fail_next.pop(operation, None)
        if code is not None:
            raise client_error(code, operation)
        if bucket not in self.buckets:
            raise client_error("NoSuchBucket", operation)

    def get_paginator(self, name: str):
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def put_object(self, Bucket, Key, Body=b""):
        self._check("put_object", Bucket)
        with self._lock:
            self.objects[(Bucket, Key)] = bytes(Body)
        return {}

    def delete_object(self, Bucket, Key):
        self._check("delete_object", Bucket)
        with self._lock:
            self.objects.pop((Bucket, Key), None)
        return {}

    def upload_fileobj(self, Fileobj, Bucket, Key, Config=None):
        self._check("upload_fileobj", Bucket)
        data = Fileobj.read()
        with self._lock:
            self.objects[(Bucket, Key)] = bytes(data)

    def download_fileobj(self, Bucket, Key, Fileobj, Config=None):
        self._check("download_fileobj", Bucket)
        with self._lock:
            if (Bucket, Key) not in self.objects:
                raise client_error("404", "HeadObject")
            data = self.objects[(Bucket, Key)]
        Fileobj.write(data)


class EventRecorder:
    """Records every event of the given types published on a bus."""

    def __init__(self, bus: EventBus, *event_types: str):
        self.events = []
        self._lock = threading.Lock()
        self.subscriber = bus.subscribe("recorder").on(is_one_of(*event_types), self._record)
        self.subscriber.listen_with_workers(1)

    def _record(self, evt):
        with self._lock:
            self.events.append(evt)

    def of_type(self, event_type: str) -> list:
        with self._lock:
            return [e for e in self.events if e.type == event_type]

    def wait_for(self, event_type: str, count: int = 1, timeout: float = 3.0) -> list:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            found = self.of_type(event_type)
            if len(found) >= count:
                return found
            time.sleep(0.01)
        raise AssertionError(f"timed out waiting for {count} x {event_type}, got {self.events}")


def _wait_until(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def bus():
    bus = EventBus(workers=4)
    yield bus
    bus.close()


@pytest.fixture
def recorder_factory(bus):
    def make(*event_types):
        return EventRecorder(bus, *event_types)
    return make


@pytest.fixture
def notifier():
    return NotificationPublisher(Level.DEBUG)


@pytest.fixture
def preferences():
    return InMemoryPreferences()


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "report.txt"
    path.write_bytes(b"local content")
    return path

