from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional, Dict


class Settings(BaseSettings):
    # Core
    environment: str = Field(default="dev")
    app_name: str = Field(default="Housing Admin API")
    tz_default: str = Field(default="Asia/Muscat", alias="TZ_DEFAULT")
    currency: str = Field(default="OMR", alias="CURRENCY")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Backend-as-a-Service
    baas_provider: str = Field(default="appwrite", alias="BAAS_PROVIDER", description="appwrite | local")
    baas_endpoint: str = Field(default="https://appwrite.rafah-housing.com/v1", alias="BAAS_ENDPOINT")
    baas_project_id: str = Field(default="67c3fca1001ace9f6ff6", alias="BAAS_PROJECT_ID")
    baas_api_key: Optional[str] = Field(default=None, alias="BAAS_API_KEY")
    baas_database_id: str = Field(default="67b596520007b70f3783", alias="BAAS_DATABASE_ID")
    baas_bucket_id: str = Field(default="682c90bf000aaf2577e7", alias="BAAS_BUCKET_ID")
    baas_timeout_s: float = Field(default=30.0, alias="BAAS_TIMEOUT_S")
    baas_page_size: int = Field(default=1000, alias="BAAS_PAGE_SIZE")
    # Hosts that older documents carry in stored file URLs
    baas_legacy_endpoints: str = Field(
        default="http://rafah-housing.com/v1,http://appwrite.rafah-housing.com/v1",
        alias="BAAS_LEGACY_ENDPOINTS",
    )

    # Collections
    users_collection_id: str = Field(default="68249b10003c16083520", alias="USERS_COLLECTION_ID")
    rooms_collection_id: str = Field(default="68249cb00025da201b9d", alias="ROOMS_COLLECTION_ID")
    contracts_collection_id: str = Field(default="68249e34003899ffa4a3", alias="CONTRACTS_COLLECTION_ID")
    payments_collection_id: str = Field(default="683f10a3002fcff81e8a", alias="PAYMENTS_COLLECTION_ID")
    services_collection_id: str = Field(default="682a0ec9001ac190ae4f", alias="SERVICES_COLLECTION_ID")
    service_orders_collection_id: str = Field(default="6829f67b0021379e8dd5", alias="SERVICE_ORDERS_COLLECTION_ID")
    checkout_requests_collection_id: str = Field(default="68272c59001081a0f67c", alias="CHECKOUT_REQUESTS_COLLECTION_ID")
    food_orders_collection_id: str = Field(default="6837318d0033889a6907", alias="FOOD_ORDERS_COLLECTION_ID")
    compliance_collection_id: str = Field(default="compliance", alias="COMPLIANCE_COLLECTION_ID")

    # Serverless functions (user provisioning)
    create_user_function_id: str = Field(default="6864eac70004e2c4c75d", alias="CREATE_USER_FUNCTION_ID")
    update_user_function_id: str = Field(default="686821900038405415f7", alias="UPDATE_USER_FUNCTION_ID")
    delete_user_function_id: str = Field(default="686805d90004bf9c4ec1", alias="DELETE_USER_FUNCTION_ID")
    password_reset_url: str = Field(default="https://rafah-housing.com/resetlink.php", alias="PASSWORD_RESET_URL")

    # Local provider (development / tests)
    database_url: str = Field(
        default="sqlite:///./var/dev.db",
        alias="DATABASE_URL",
        description="Backing store for BAAS_PROVIDER=local",
    )
    auto_create_db: bool = Field(default=True, alias="AUTO_CREATE_DB")
    local_storage_dir: str = Field(default="var/storage", alias="LOCAL_STORAGE_DIR")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")

    # Local session tokens
    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256")
    jwt_ttl_seconds: int = Field(default=60 * 60 * 12, alias="JWT_TTL")  # 12 hours

    # Images
    image_max_dim: int = Field(default=1024, alias="IMAGE_MAX_DIM")
    image_jpeg_quality: int = Field(default=70, alias="IMAGE_JPEG_QUALITY")
    max_ticket_images: int = Field(default=5, alias="MAX_TICKET_IMAGES")

    # Scheduling
    checkout_sweep_enabled: bool = Field(default=True, alias="CHECKOUT_SWEEP_ENABLED")
    checkout_sweep_interval_s: int = Field(default=300, alias="CHECKOUT_SWEEP_INTERVAL_S")

    # Rate limit
    rate_limit: str = Field(default="100/minute")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True

    @property
    def collections(self) -> Dict[str, str]:
        return {
            "users": self.users_collection_id,
            "rooms": self.rooms_collection_id,
            "contracts": self.contracts_collection_id,
            "payments": self.payments_collection_id,
            "services": self.services_collection_id,
            "serviceOrders": self.service_orders_collection_id,
            "checkoutRequests": self.checkout_requests_collection_id,
            "foodOrders": self.food_orders_collection_id,
            "compliance": self.compliance_collection_id,
        }


settings = Settings()
