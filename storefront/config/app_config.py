from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod"
    SERVICE_NAME: str = "bloomcart-storefront"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

app_config = Settings()
