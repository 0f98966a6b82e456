"""
Monitoring and logging utilities for ReviewHub Lambda functions.
Provides structured request logging and CloudWatch performance metrics.
"""

import json
import time
import logging
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Dict, Any, Optional, Callable
import boto3

from .config import config
from .error_handling import CORS_HEADERS

logger = logging.getLogger(__name__)

_cloudwatch = None

def get_cloudwatch_client():
    """CloudWatch client, created on first use."""
    global _cloudwatch
    if _cloudwatch is None:
        _cloudwatch = boto3.client('cloudwatch', region_name=config.AWS_REGION)
    return _cloudwatch

class PerformanceMonitor:
    """Performance monitoring and metrics collection."""

    def __init__(self, service_name: str, environment: str):
        self.service_name = service_name
        self.environment = environment
        self.namespace = f"ReviewHub/{environment}"

    def put_metric(self, metric_name: str, value: float, unit: str = 'Count',
                   dimensions: Optional[Dict[str, str]] = None):
        """Put custom metric to CloudWatch."""
        if not config.METRICS_ENABLED:
            return

        try:
            metric_data = {
                'MetricName': metric_name,
                'Value': value,
                'Unit': unit,
                'Timestamp': datetime.now(timezone.utc)
            }

            dimensions = dict(dimensions or {})
            dimensions.setdefault('Service', self.service_name)
            metric_data['Dimensions'] = [
                {'Name': k, 'Value': v} for k, v in dimensions.items()
            ]

            get_cloudwatch_client().put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )

        except Exception as e:
            logger.error(f"Failed to put metric {metric_name}: {str(e)}")

def lambda_monitor(service_name: str, environment: str = 'dev'):
    """
    Decorator for Lambda entry points.
    Logs request start/end, publishes invocation metrics and turns any
    exception escaping the handler into a 500 response.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            start_time = time.time()
            performance_monitor = PerformanceMonitor(service_name, environment)
            request_id = getattr(context, 'aws_request_id', None) or 'unknown'

            logger.info("REQUEST_START: " + json.dumps({
                'request_id': request_id,
                'service': service_name,
                'http_method': event.get('httpMethod', 'unknown'),
                'path': event.get('path', 'unknown')
            }))

            try:
                result = func(event, context)
                execution_time = (time.time() - start_time) * 1000

                logger.info("REQUEST_SUCCESS: " + json.dumps({
                    'request_id': request_id,
                    'service': service_name,
                    'execution_time_ms': execution_time,
                    'status_code': result.get('statusCode', 200) if isinstance(result, dict) else 200
                }))

                performance_monitor.put_metric('ExecutionTime', execution_time, 'Milliseconds')
                performance_monitor.put_metric('Invocations', 1)

                return result

            except Exception as e:
                execution_time = (time.time() - start_time) * 1000

                logger.error("REQUEST_ERROR: " + json.dumps({
                    'request_id': request_id,
                    'service': service_name,
                    'error_type': type(e).__name__,
                    'error_message': str(e),
                    'execution_time_ms': execution_time,
                    'traceback': traceback.format_exc()
                }))

                performance_monitor.put_metric('Errors', 1)

                return {
                    'statusCode': 500,
                    'headers': dict(CORS_HEADERS),
                    'body': json.dumps({
                        'message': str(e),
                        'request_id': request_id
                    })
                }

        return wrapper
    return decorator

def log_database_operation(operation: str, collection: str, execution_time_ms: float,
                          success: bool, item_count: int = 1):
    """Log store operations with their duration."""
    log_data = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'operation': operation,
        'collection': collection,
        'execution_time_ms': round(execution_time_ms, 2),
        'success': success,
        'item_count': item_count
    }

    if success:
        logger.debug(f"DB_OPERATION: {json.dumps(log_data)}")
    else:
        logger.error(f"DB_OPERATION_FAILED: {json.dumps(log_data)}")

def log_api_call(api_name: str, endpoint: str, method: str, status_code: int,
                execution_time_ms: float):
    """Log API calls, level chosen by status class."""
    log_data = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'api_name': api_name,
        'endpoint': endpoint,
        'method': method,
        'status_code': status_code,
        'execution_time_ms': round(execution_time_ms, 2)
    }

    if status_code < 400:
        logger.info(f"API_CALL: {json.dumps(log_data)}")
    elif status_code < 500:
        logger.warning(f"API_CALL_CLIENT_ERROR: {json.dumps(log_data)}")
    else:
        logger.error(f"API_CALL_SERVER_ERROR: {json.dumps(log_data)}")
