from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.modules.taxes.models import Tax
from app.modules.taxes.schemas import TaxCreate


class TaxService:
    def __init__(self, db: Session):
        self.db = db

    def create_tax(self, tax_data: TaxCreate) -> Tax:
        """Crear una clase tributaria"""
        try:
            existing = self.db.query(Tax).filter(Tax.name == tax_data.name).first()
            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un impuesto con el nombre '{tax_data.name}'"
                )

            tax = Tax(**tax_data.model_dump())
            self.db.add(tax)
            self.db.commit()
            self.db.refresh(tax)
            return tax

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un impuesto con el nombre '{tax_data.name}'"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_taxes(self) -> dict:
        taxes = self.db.query(Tax).order_by(Tax.name).all()
        return {"taxes": taxes, "total": len(taxes)}

    def get_tax_by_id(self, tax_id: int) -> Tax:
        tax = self.db.query(Tax).filter(Tax.id == tax_id).first()
        if not tax:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Impuesto no encontrado"
            )
        return tax
