"""Test utilities for flexo-backup tests."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from botocore.exceptions import ClientError
from redis.exceptions import RedisError

from flexo_backup.backup.models import MachineProgramRecord


def make_record(**overrides) -> MachineProgramRecord:
    """Create a machine program with sensible defaults."""
    fields = dict(
        id=1,
        machine_number=11,
        name="Bolsa arroz 1kg",
        articulo="F1",
        ot_sap="OT-1001",
        cliente="ACME Foods",
        referencia="REF-01",
        td="TD-7",
        numero_colores=4,
        colores=["Cyan", "Magenta", "Amarillo", "Negro"],
        sustrato="BOPP 35",
        kilos=Decimal("1250.50"),
        estado="LISTO",
        fecha_inicio=datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc),
        progreso=0,
        created_at=datetime(2024, 4, 30, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return MachineProgramRecord(**fields)


def sample_records() -> List[MachineProgramRecord]:
    """Three programs: F1 on machine 11, F2 and F3 on machine 12."""
    return [
        make_record(id=1, machine_number=11, articulo="F1", ot_sap="OT-1001"),
        make_record(
            id=2,
            machine_number=12,
            articulo="F2",
            ot_sap="OT-1002",
            cliente="Flexpack",
            estado="CORRIENDO",
            progreso=40,
            kilos=Decimal("800"),
            fecha_inicio=datetime(2024, 5, 2, 6, 0, tzinfo=timezone.utc),
        ),
        make_record(
            id=3,
            machine_number=12,
            articulo="F3",
            ot_sap="OT-1003",
            estado="SUSPENDIDO",
            kilos=Decimal("300.25"),
            fecha_inicio=datetime(2024, 5, 3, 14, 30, tzinfo=timezone.utc),
        ),
    ]


# Redis double

class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.commands = []
        return False

    def delete(self, key):
        self.commands.append(("delete", key))
        return self

    def hset(self, key, mapping=None):
        self.commands.append(("hset", key, dict(mapping or {})))
        return self

    def set(self, key, value):
        self.commands.append(("set", key, value))
        return self

    async def execute(self):
        if self.redis.fail_on_execute:
            raise RedisError("EXECABORT Transaction discarded")

        # Apply on a copy and swap, like MULTI/EXEC
        data = {k: dict(v) if isinstance(v, dict) else v for k, v in self.redis.data.items()}
        for command in self.commands:
            if command[0] == "delete":
                data.pop(command[1], None)
            elif command[0] == "hset":
                data.setdefault(command[1], {}).update(
                    {k.encode(): v for k, v in command[2].items()}
                )
            elif command[0] == "set":
                data[command[1]] = str(command[2]).encode()
        self.redis.data = data
        return [True] * len(self.commands)


class FakeRedis:
    """Dict-backed subset of redis.asyncio.Redis."""

    def __init__(self):
        self.data: Dict[str, object] = {}
        self.fail_on_execute = False
        self.closed = False

    async def ping(self):
        return True

    async def hgetall(self, key):
        return dict(self.data.get(key, {}))

    async def hlen(self, key):
        return len(self.data.get(key, {}))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        self.closed = True


# S3 double

class FakeBody:
    def __init__(self, data: bytes):
        self._data = data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self):
        return self._data


class FakePaginator:
    def __init__(self, objects: Dict[str, bytes]):
        self.objects = objects

    async def paginate(self, Bucket, Prefix):
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        # Two keys per page to exercise pagination
        for i in range(0, len(keys), 2):
            yield {"Contents": [{"Key": k} for k in keys[i:i + 2]]}
        if not keys:
            yield {}


class FakeS3Client:
    def __init__(self, objects: Dict[str, bytes], fail_puts_for: Optional[str]):
        self.objects = objects
        self.fail_puts_for = fail_puts_for

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def put_object(self, Bucket, Key, Body, ContentType=None):
        if self.fail_puts_for and self.fail_puts_for in Key:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.objects[Key] = bytes(Body)

    async def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": FakeBody(self.objects[Key])}

    async def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self.objects)


class FakeS3Session:
    """Stands in for aioboto3.Session; every client shares one object dict."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_puts_for: Optional[str] = None

    def client(self, service_name, region_name=None, endpoint_url=None):
        assert service_name == "s3"
        return FakeS3Client(self.objects, self.fail_puts_for)
