"""
Configuration settings for the ReviewHub backend
"""
import os


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration"""
    
    # Environment
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'dev')
    PROJECT_NAME = os.getenv('PROJECT_NAME', 'reviewhub')
    
    # AWS Configuration
    AWS_REGION = os.getenv('AWS_REGION', 'ap-northeast-2')
    
    # DocumentDB / MongoDB Configuration
    MONGODB_URI = os.getenv('MONGODB_URI')
    DOCUMENTDB_HOST = os.getenv('DOCUMENTDB_HOST')
    DOCUMENTDB_PORT = int(os.getenv('DOCUMENTDB_PORT', '27017'))
    DOCUMENTDB_USERNAME = os.getenv('DOCUMENTDB_USERNAME')
    DOCUMENTDB_PASSWORD = os.getenv('DOCUMENTDB_PASSWORD')
    DOCUMENTDB_DATABASE = os.getenv('DOCUMENTDB_DATABASE', f'{PROJECT_NAME}_{ENVIRONMENT}')
    DOCUMENTDB_SSL_CA_CERTS = os.getenv('DOCUMENTDB_SSL_CA_CERTS', '/opt/global-bundle.pem')
    
    # Collections (names used by the ingestion pipeline)
    PRODUCT_COLLECTION = os.getenv('PRODUCT_COLLECTION', 'Product')
    REVIEW_COLLECTION = os.getenv('REVIEW_COLLECTION', 'Review')
    
    # ElastiCache Configuration
    ELASTICACHE_HOST = os.getenv('ELASTICACHE_HOST')
    ELASTICACHE_PORT = int(os.getenv('ELASTICACHE_PORT', '6379'))
    
    # Cache Settings
    CACHE_TTL_SECONDS = int(os.getenv('CACHE_TTL_SECONDS', '3600'))  # 1 hour
    ANALYTICS_CACHE_TTL_SECONDS = int(os.getenv('ANALYTICS_CACHE_TTL_SECONDS', '1800'))  # 30 minutes
    
    # Pagination
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '20'))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', '100'))
    
    # Analytics
    WORD_CLOUD_BATCH_SIZE = int(os.getenv('WORD_CLOUD_BATCH_SIZE', '1000'))
    WORD_CLOUD_DROP_EMPTY_TOKENS = _as_bool(os.getenv('WORD_CLOUD_DROP_EMPTY_TOKENS', 'false'))
    TREND_MONTHS = int(os.getenv('TREND_MONTHS', '6'))
    
    # Reviews
    DEFAULT_AVATAR_URL = os.getenv('DEFAULT_AVATAR_URL', 'https://example.com/default-avatar.png')
    
    # Monitoring
    METRICS_ENABLED = _as_bool(os.getenv('METRICS_ENABLED', 'false'))
    
    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    
    @classmethod
    def mongodb_uri(cls) -> str:
        """Connection string for the document store"""
        if cls.MONGODB_URI:
            return cls.MONGODB_URI
        
        uri = (
            f"mongodb://{cls.DOCUMENTDB_USERNAME}:{cls.DOCUMENTDB_PASSWORD}"
            f"@{cls.DOCUMENTDB_HOST}:{cls.DOCUMENTDB_PORT}/"
            f"{cls.DOCUMENTDB_DATABASE}?tls=true"
            f"&replicaSet=rs0&readPreference=secondaryPreferred&retryWrites=false"
        )
        if os.path.exists(cls.DOCUMENTDB_SSL_CA_CERTS):
            uri += f"&tlsCAFile={cls.DOCUMENTDB_SSL_CA_CERTS}"
        return uri
    
    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration"""
        if cls.MONGODB_URI:
            required_vars = []
        else:
            required_vars = [
                'DOCUMENTDB_HOST',
                'DOCUMENTDB_USERNAME',
                'DOCUMENTDB_PASSWORD'
            ]
        
        missing_vars = []
        for var in required_vars:
            if not getattr(cls, var):
                missing_vars.append(var)
        
        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")
        
        return True

# Create global config instance
config = Config()
