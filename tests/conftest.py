import gzip
import io
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError

# Ensure `src` is on sys.path for tests when not installed editable.
SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

SUBMITTED = datetime(2018, 12, 11, 10, 9, 8, tzinfo=timezone.utc)


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def make_ids(n: int) -> List[str]:
    return [f"q{i:02x}" for i in range(n)]


class FakeAthenaClient:
    """In-memory stand-in for a boto3 Athena client.

    IDs are served newest first in pages; by default two pages split at 60%
    of the list. ``list_throttles`` / ``get_throttles`` make the next N calls
    raise ThrottlingException.
    """

    def __init__(
        self,
        query_execution_ids: List[str],
        *,
        page_size: Optional[int] = None,
        region: str = "us-stubbed-1",
        submitted: datetime = SUBMITTED,
        completed: Optional[datetime] = SUBMITTED,
    ):
        self.meta = SimpleNamespace(region_name=region)
        self.page_size = page_size
        self.replace_listing(query_execution_ids)
        self.submitted = submitted
        self.completed = completed
        self.list_calls: List[Dict[str, Any]] = []
        self.get_calls: List[List[str]] = []
        self.list_throttles = 0
        self.get_throttles = 0

    def replace_listing(self, query_execution_ids: List[str]) -> None:
        self.ids = list(query_execution_ids)
        if self.page_size is None:
            split = int(len(self.ids) * 0.6)
            pages = [self.ids[:split], self.ids[split:]]
        else:
            size = self.page_size
            pages = [self.ids[i:i + size] for i in range(0, len(self.ids), size)]
        # Athena answers an empty listing with a single empty page.
        self.pages = [page for page in pages if page] or [[]]

    def list_query_executions(self, **params: Any) -> Dict[str, Any]:
        self.list_calls.append(dict(params))
        if self.list_throttles:
            self.list_throttles -= 1
            raise client_error("ThrottlingException", "ListQueryExecutions")
        token = params.get("NextToken")
        index = int(token.split("-")[1]) if token else 0
        response: Dict[str, Any] = {"QueryExecutionIds": list(self.pages[index])}
        if index + 1 < len(self.pages):
            response["NextToken"] = f"token-{index + 1}"
        return response

    def batch_get_query_execution(self, QueryExecutionIds: List[str]) -> Dict[str, Any]:
        self.get_calls.append(list(QueryExecutionIds))
        if self.get_throttles:
            self.get_throttles -= 1
            raise client_error("ThrottlingException", "BatchGetQueryExecution")
        executions = []
        for query_execution_id in QueryExecutionIds:
            status: Dict[str, Any] = {"State": "SUCCEEDED", "SubmissionDateTime": self.submitted}
            if self.completed is not None:
                status["CompletionDateTime"] = self.completed
            executions.append(
                {
                    "QueryExecutionId": query_execution_id,
                    "Query": "SELECT 1",
                    "StatementType": "DML",
                    "Status": status,
                    "WorkGroup": "primary",
                }
            )
        return {"QueryExecutions": executions, "UnprocessedQueryExecutionIds": []}


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, fail_put: Optional[Callable[[str, str], Optional[Exception]]] = None):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.puts: List[Tuple[str, str]] = []
        self.fail_put = fail_put

    def put_object(self, Bucket: str, Key: str, Body: bytes) -> Dict[str, Any]:
        if self.fail_put is not None:
            error = self.fail_put(Bucket, Key)
            if error is not None:
                raise error
        self.puts.append((Bucket, Key))
        self.objects[(Bucket, Key)] = Body
        return {}

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        try:
            body = self.objects[(Bucket, Key)]
        except KeyError:
            raise client_error("NoSuchKey", "GetObject") from None
        return {"Body": io.BytesIO(body)}

    def put_json(self, bucket: str, key: str, document: Dict[str, Any]) -> None:
        self.objects[(bucket, key)] = json.dumps(document).encode("utf-8")

    def get_json(self, bucket: str, key: str) -> Dict[str, Any]:
        return json.loads(self.objects[(bucket, key)])

    def history_puts(self, bucket: str) -> List[str]:
        return [key for b, key in self.puts if b == bucket]

    def read_history(self, bucket: str, key: str) -> List[Dict[str, Any]]:
        lines = gzip.decompress(self.objects[(bucket, key)]).decode("utf-8").splitlines()
        return [json.loads(line) for line in lines]


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def record_sleep(sleeps: List[float]) -> Callable[[float], None]:
    return sleeps.append
