"""
API Gateway event helpers shared by the ReviewHub Lambda functions
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Tuple
from urllib.parse import unquote

from .error_handling import CORS_HEADERS, ErrorCode, ErrorDetails, ValidationError


@dataclass
class ApiRequest:
    """Parsed body/query/path bundle handed to the request handlers"""
    http_method: str
    path: str
    body: Dict[str, Any] = field(default_factory=dict)
    query_params: Dict[str, Any] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)


def parse_event(event: Dict[str, Any]) -> ApiRequest:
    """Build an ApiRequest from an API Gateway proxy event"""
    body = {}
    if event.get('body'):
        try:
            body = json.loads(event['body'])
        except json.JSONDecodeError:
            raise ValidationError(ErrorDetails(
                code=ErrorCode.INVALID_FORMAT,
                message='Invalid JSON in request body'
            ))
        if not isinstance(body, dict):
            raise ValidationError(ErrorDetails(
                code=ErrorCode.INVALID_FORMAT,
                message='Request body must be a JSON object'
            ))

    return ApiRequest(
        http_method=(event.get('httpMethod') or '').upper(),
        path=event.get('path') or '',
        body=body,
        query_params=dict(event.get('queryStringParameters') or {}),
        path_params={k: v for k, v in (event.get('pathParameters') or {}).items() if v is not None}
    )


Route = Tuple[str, Pattern, str]


def route(method: str, pattern: str, handler_name: str) -> Route:
    return method, re.compile(pattern), handler_name


def match_route(routes: List[Route], request: ApiRequest) -> Optional[str]:
    """Name of the handler for the request; named groups become path params

    API Gateway already decodes pathParameters, only raw path captures are
    unquoted here and they never override a gateway value.
    """
    for method, pattern, handler_name in routes:
        if method != request.http_method:
            continue
        match = pattern.search(request.path)
        if match:
            for name, value in match.groupdict().items():
                request.path_params.setdefault(name, unquote(value))
            return handler_name
    return None


def success_response(data: Any, status_code: int = 200) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': dict(CORS_HEADERS),
        'body': json.dumps(data, ensure_ascii=False, default=str)
    }
