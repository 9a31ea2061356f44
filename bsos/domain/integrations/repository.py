"""Integration repository - Database operations for platform integrations"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Integration
from .schemas import IntegrationSettings


class IntegrationRepository:
    """Repository for integration database operations"""

    @staticmethod
    def get_integrations(db: Session) -> list[Integration]:
        return db.query(Integration).order_by(Integration.platform.asc()).all()

    @staticmethod
    def get_by_platform(db: Session, platform: str) -> Optional[Integration]:
        return db.query(Integration).filter(Integration.platform == platform).first()

    @staticmethod
    def get_settings(db: Session, platform: str) -> IntegrationSettings:
        """Stored settings of a platform, defaults when it has no integration"""
        integration = IntegrationRepository.get_by_platform(db, platform)
        return IntegrationSettings.model_validate((integration.settings if integration else None) or {})

    @staticmethod
    def create_integration(db: Session, **integration_data) -> Integration:
        integration = Integration(**integration_data)
        db.add(integration)
        db.commit()
        db.refresh(integration)
        return integration

    @staticmethod
    def update_integration(db: Session, integration: Integration, **updates) -> Integration:
        """Update an integration with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(integration, key):
                setattr(integration, key, value)

        db.commit()
        db.refresh(integration)
        return integration
