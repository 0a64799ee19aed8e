import json

from typing_extensions import override

from cronify._internal.serializers.base import JSONCompat, Serializer


class JSONSerializer(Serializer):
    """Serializer for job data and queued payloads."""

    @override
    def dumpb(self, data: JSONCompat) -> bytes:
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @override
    def loadb(self, data: bytes) -> JSONCompat:
        r: JSONCompat = json.loads(data)
        return r
