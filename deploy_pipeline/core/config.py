from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "deploy-pipeline"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    database_url: str = "sqlite:///./deploy_pipeline.db"
    redis_url: str = "redis://localhost:6379/0"

    # pipeline trigger + source
    trigger_branch: str = "main"
    repo_url: str = "."
    pipeline_file: str | None = None

    # stage commands
    install_command: str = "npm ci"
    test_command: str = "npm test"
    dockerfile: str = "Dockerfile"
    docker_binary: str = "docker"

    # registry
    image_repository: str = "repo/app"
    image_tag: str = "latest"
    registry_host: str | None = None
    registry_username_secret: str = "REGISTRY_USERNAME"
    registry_password_secret: str = "REGISTRY_PASSWORD"

    default_stage_timeout_s: float | None = 1800.0
    workspaces_dir: str = "/data/workspaces"
    # leave each run's checkout on disk after it finishes
    keep_workspaces: bool = False
    alembic_config: str = "alembic.ini"

settings = Settings()
