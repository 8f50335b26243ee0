"""Object-storage operations built on the signed request pipeline.

Each operation resolves its URL, prepares headers, dispatches through
:func:`r2call.dispatch.s3_fetch` and interprets the status it expects:

    ==================  ======  ==================  =========================
    operation           method  expected            404
    ==================  ======  ==================  =========================
    list_buckets        GET     200                 error
    head_bucket         HEAD    200                 absent (None)
    create_bucket       PUT     200                 error
    delete_bucket       DELETE  204                 error
    list_objects(_v1)   GET     200                 error
    get_object          GET     200, 206, 304       absent (None)
    head_object         HEAD    200, 206, 304       absent (None)
    put_object          PUT     200                 error
    delete_object       DELETE  204                 error
    delete_objects      POST    200                 error
    copy_object         PUT     200                 error
    ==================  ======  ==================  =========================
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from r2call.addressing import UrlStyle, compute_bucket_url, uri_encode
from r2call.body import EMPTY_BODY, BodySource, BufferedBody
from r2call.credentials import CallContext
from r2call.dispatch import s3_fetch
from r2call.hashing import md5_base64
from r2call.models import BucketInfo, CopyObjectResult, DeleteObjectsResult, ListObjectsResult
from r2call.responses import throw_if_unexpected_status, validate_response
from r2call.validation import (
    validate_bucket_name,
    validate_max_keys,
    validate_object_key,
    validate_part_number,
)
from r2call.xml_utils import (
    parse_copy_object_result,
    parse_delete_result,
    parse_list_buckets,
    parse_list_objects,
    render_delete_objects,
)

logger = logging.getLogger(__name__)

R2_REGION_AUTO = "auto"


@dataclass(frozen=True)
class R2Endpoint:
    """Where requests go and how they are addressed.

    Attributes:
        origin: Scheme and host of the storage endpoint.
        region: Region used in the credential scope.
        url_style: Bucket addressing style.
    """

    origin: str
    region: str = R2_REGION_AUTO
    url_style: UrlStyle = UrlStyle.PATH

    @classmethod
    def for_account(cls, account_id: str, url_style: UrlStyle = UrlStyle.PATH) -> R2Endpoint:
        """The R2 endpoint for a Cloudflare account."""
        return cls(
            origin=f"https://{account_id}.r2.cloudflarestorage.com",
            region=R2_REGION_AUTO,
            url_style=url_style,
        )


def _conditional_headers(
    if_match: str | None = None,
    if_none_match: str | None = None,
    if_modified_since: str | None = None,
    if_unmodified_since: str | None = None,
    prefix: str = "",
) -> dict[str, str]:
    headers: dict[str, str] = {}
    if if_match is not None:
        headers[f"{prefix}if-match"] = if_match
    if if_none_match is not None:
        headers[f"{prefix}if-none-match"] = if_none_match
    if if_modified_since is not None:
        headers[f"{prefix}if-modified-since"] = if_modified_since
    if if_unmodified_since is not None:
        headers[f"{prefix}if-unmodified-since"] = if_unmodified_since
    return headers


async def _read_and_close(response: httpx.Response) -> bytes:
    try:
        return await response.aread()
    finally:
        await response.aclose()


class R2Client:
    """Async client for an S3-compatible endpoint.

    Use as an async context manager; an ``httpx.AsyncClient`` is created
    unless one is supplied, in which case the caller keeps ownership.

    Attributes:
        endpoint: The target endpoint.
        context: Credentials and per-invocation settings.
    """

    def __init__(
        self,
        endpoint: R2Endpoint,
        context: CallContext,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.context = context
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> R2Client:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def bucket_url(
        self,
        bucket: str,
        key: str | None = None,
        query: Mapping[str, str | int] | None = None,
    ) -> httpx.URL:
        """Resolve the URL for a bucket or object on this endpoint."""
        validate_bucket_name(bucket)
        if key is not None:
            validate_object_key(key)
        return compute_bucket_url(
            self.endpoint.origin,
            bucket,
            key,
            url_style=self.endpoint.url_style,
            query=query,
        )

    async def _fetch(
        self,
        method: str,
        url: httpx.URL,
        headers: Mapping[str, str] | None = None,
        body: BodySource = EMPTY_BODY,
    ) -> httpx.Response:
        return await s3_fetch(
            self._client,
            method=method,
            url=url,
            region=self.endpoint.region,
            context=self.context,
            headers=headers,
            body=body,
        )

    # -- Buckets ----------------------------------------------------------------

    async def list_buckets(self) -> list[BucketInfo]:
        """List all buckets visible to the credentials."""
        url = httpx.URL(self.endpoint.origin.rstrip("/") + "/")
        response = await throw_if_unexpected_status(await self._fetch("GET", url), 200)
        return parse_list_buckets(await _read_and_close(response))

    async def head_bucket(self, bucket: str) -> httpx.Response | None:
        """Check a bucket exists; returns None when it does not."""
        response = await validate_response(
            await self._fetch("HEAD", self.bucket_url(bucket)), (200,), absent_on_not_found=True
        )
        if response is not None:
            await response.aclose()
        return response

    async def create_bucket(self, bucket: str) -> httpx.Response:
        """Create a bucket."""
        response = await throw_if_unexpected_status(
            await self._fetch("PUT", self.bucket_url(bucket)), 200
        )
        await _read_and_close(response)
        return response

    async def delete_bucket(self, bucket: str) -> None:
        """Delete an empty bucket."""
        response = await throw_if_unexpected_status(
            await self._fetch("DELETE", self.bucket_url(bucket)), 204
        )
        await _read_and_close(response)

    # -- Listing ----------------------------------------------------------------

    async def list_objects(
        self,
        bucket: str,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_keys: int | None = None,
        continuation_token: str | None = None,
        start_after: str | None = None,
    ) -> ListObjectsResult:
        """List one page of objects (ListObjectsV2)."""
        query: dict[str, str | int] = {"list-type": 2}
        if prefix is not None:
            query["prefix"] = prefix
        if delimiter is not None:
            query["delimiter"] = delimiter
        if max_keys is not None:
            query["max-keys"] = validate_max_keys(max_keys)
        if continuation_token is not None:
            query["continuation-token"] = continuation_token
        if start_after is not None:
            query["start-after"] = start_after

        response = await throw_if_unexpected_status(
            await self._fetch("GET", self.bucket_url(bucket, query=query)), 200
        )
        return parse_list_objects(await _read_and_close(response))

    async def list_objects_v1(
        self,
        bucket: str,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_keys: int | None = None,
        marker: str | None = None,
    ) -> ListObjectsResult:
        """List one page of objects with the original ListObjects call."""
        query: dict[str, str | int] = {}
        if prefix is not None:
            query["prefix"] = prefix
        if delimiter is not None:
            query["delimiter"] = delimiter
        if max_keys is not None:
            query["max-keys"] = validate_max_keys(max_keys)
        if marker is not None:
            query["marker"] = marker

        response = await throw_if_unexpected_status(
            await self._fetch("GET", self.bucket_url(bucket, query=query or None)), 200
        )
        return parse_list_objects(await _read_and_close(response))

    # -- Objects ----------------------------------------------------------------

    async def get_object(
        self,
        bucket: str,
        key: str,
        if_match: str | None = None,
        if_none_match: str | None = None,
        if_modified_since: str | None = None,
        if_unmodified_since: str | None = None,
        part_number: int | None = None,
        range: str | None = None,
    ) -> httpx.Response | None:
        """Fetch an object.

        Returns:
            The streaming response (200, 206 or 304) for the caller to read
            and close, or None if the object does not exist.
        """
        return await self._get_or_head(
            "GET",
            bucket,
            key,
            if_match=if_match,
            if_none_match=if_none_match,
            if_modified_since=if_modified_since,
            if_unmodified_since=if_unmodified_since,
            part_number=part_number,
            range=range,
        )

    async def head_object(
        self,
        bucket: str,
        key: str,
        if_match: str | None = None,
        if_none_match: str | None = None,
        if_modified_since: str | None = None,
        if_unmodified_since: str | None = None,
        part_number: int | None = None,
        range: str | None = None,
    ) -> httpx.Response | None:
        """Fetch object metadata; None if the object does not exist."""
        response = await self._get_or_head(
            "HEAD",
            bucket,
            key,
            if_match=if_match,
            if_none_match=if_none_match,
            if_modified_since=if_modified_since,
            if_unmodified_since=if_unmodified_since,
            part_number=part_number,
            range=range,
        )
        if response is not None:
            await response.aclose()
        return response

    async def _get_or_head(
        self,
        method: str,
        bucket: str,
        key: str,
        part_number: int | None = None,
        range: str | None = None,
        **conditionals: str | None,
    ) -> httpx.Response | None:
        headers = _conditional_headers(**conditionals)
        if range is not None:
            headers["range"] = range
        query = None
        if part_number is not None:
            query = {"partNumber": validate_part_number(part_number)}

        response = await self._fetch(method, self.bucket_url(bucket, key, query=query), headers)
        result = await validate_response(response, (200, 304, 206), absent_on_not_found=True)
        if result is None:
            logger.debug(
                "%s %s/%s: not found", method, bucket, key, extra={"bucket": bucket, "key": key}
            )
        return result

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BodySource = EMPTY_BODY,
        content_md5: str | None = None,
        content_type: str | None = None,
        cache_control: str | None = None,
        content_disposition: str | None = None,
        content_encoding: str | None = None,
        content_language: str | None = None,
        expires: str | None = None,
        metadata: Mapping[str, str] | None = None,
        if_match: str | None = None,
        if_none_match: str | None = None,
    ) -> httpx.Response:
        """Upload an object in a single request.

        Returns:
            The (already read and closed) response; its ``etag`` header
            identifies the stored object.
        """
        headers = _conditional_headers(if_match=if_match, if_none_match=if_none_match)
        optional = {
            "content-md5": content_md5,
            "content-type": content_type,
            "cache-control": cache_control,
            "content-disposition": content_disposition,
            "content-encoding": content_encoding,
            "content-language": content_language,
            "expires": expires,
        }
        headers.update({name: value for name, value in optional.items() if value is not None})
        for name, value in (metadata or {}).items():
            headers[f"x-amz-meta-{name.lower()}"] = value

        response = await throw_if_unexpected_status(
            await self._fetch("PUT", self.bucket_url(bucket, key), headers, body), 200
        )
        await _read_and_close(response)
        logger.debug(
            "Stored %s/%s etag=%s",
            bucket,
            key,
            response.headers.get("etag"),
            extra={"bucket": bucket, "key": key},
        )
        return response

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        response = await throw_if_unexpected_status(
            await self._fetch("DELETE", self.bucket_url(bucket, key)), 204
        )
        await _read_and_close(response)
        logger.debug("Deleted %s/%s", bucket, key, extra={"bucket": bucket, "key": key})

    async def delete_objects(
        self, bucket: str, keys: list[str], quiet: bool = False
    ) -> DeleteObjectsResult:
        """Delete several objects in one request."""
        for key in keys:
            validate_object_key(key)
        data = render_delete_objects(keys, quiet=quiet).encode("utf-8")
        headers = {"content-type": "application/xml", "content-md5": md5_base64(data)}

        response = await throw_if_unexpected_status(
            await self._fetch(
                "POST", self.bucket_url(bucket, query={"delete": ""}), headers, BufferedBody(data)
            ),
            200,
        )
        return parse_delete_result(await _read_and_close(response))

    async def copy_object(
        self,
        bucket: str,
        key: str,
        source_bucket: str,
        source_key: str,
        if_match: str | None = None,
        if_none_match: str | None = None,
        if_modified_since: str | None = None,
        if_unmodified_since: str | None = None,
    ) -> CopyObjectResult:
        """Copy an object server-side; conditionals apply to the source."""
        validate_bucket_name(source_bucket)
        validate_object_key(source_key)
        headers = _conditional_headers(
            if_match=if_match,
            if_none_match=if_none_match,
            if_modified_since=if_modified_since,
            if_unmodified_since=if_unmodified_since,
            prefix="x-amz-copy-source-",
        )
        headers["x-amz-copy-source"] = (
            f"/{source_bucket}/{uri_encode(source_key, encode_slash=False)}"
        )

        response = await throw_if_unexpected_status(
            await self._fetch("PUT", self.bucket_url(bucket, key), headers), 200
        )
        return parse_copy_object_result(await _read_and_close(response))
