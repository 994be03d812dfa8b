from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, confloat, conint, constr

from portal.models.request import DocumentModel, IsoDate

CATEGORIES = ("TI", "Administrativo", "Limpeza", "Manutenção")
CONDITIONS = ("Ótimo", "Bom", "Razoável", "Ruim", "Péssimo")

LOCATIONS_BY_UNIT: Dict[str, List[str]] = {
    "Berçário e Educação Infantil": [
        "Recepção", "Sala de reuniões", "Cozinha", "Pátio", "Sala de música", "Sala de science", "Berçário 2",
        "Berçário 3", "Refeitório", "Sala de movimento", "Pátio integral", "Infantil 1", "Infantil 2",
    ],
    "Fundamental": [
        "Recepção", "Secretaria", "Sala de atendimento", "Sala de atendimento (Laranja)",
        "Sala de auxiliar de coordenação fundamental 1", "Sala de oficinas", "Sala de música", "Sala de science",
        "Integral", "4º Ano", "Patio (Cantina)", "Refeitório", "Biblioteca (Inferior)", "3º Ano", "2º Ano",
        "1º Ano", "Sala dos professores", "Sala de Linguas", "Coordenação de linguas/Fundamental 2",
        "Sala de artes", "Coordenação Fundamental 1 / Coordenação de matemática", "8º ano", "7º Ano",
        "Apoio pedagógico", "Orientação educacional", "TI", "Sala de oficinas (Piso superior)", "5º Ano",
        "6º Ano", "Biblioteca (Superior)", "Sala de convivência", "9º Ano",
    ],
    "Anexo": [
        "Sala de manutenção", "Sala de reuniões", "Refeitório", "Cozinha", "Nutrição", "Controladoria",
        "Financeiro", "Operacional", "Mantenedoria",
    ],
}


class StockItem(DocumentModel):
    """Schema de validação para um item do estoque (coleção ``estoque``)."""
    id: Optional[str] = None
    name: constr(strip_whitespace=True, min_length=1) = Field(alias="nome")
    quantity: conint(gt=0) = Field(alias="quantidade")
    unit_value: Optional[confloat(ge=0)] = Field(default=None, alias="valorUnitario")
    description: Optional[str] = Field(default=None, alias="descricao")
    category: Literal["TI", "Administrativo", "Limpeza", "Manutenção"] = Field(alias="categoria")
    unit: constr(min_length=1) = Field(alias="unidade")
    location: constr(min_length=1) = Field(alias="localizacao")
    condition: Literal["Ótimo", "Bom", "Razoável", "Ruim", "Péssimo"] = Field(default="Bom", alias="estado")
    responsible: Optional[str] = Field(default=None, alias="responsavel")
    received_on: Optional[IsoDate] = Field(default=None, alias="dataRecebimento")
    invoice_number: Optional[str] = Field(default=None, alias="notaFiscal")
    order_number: Optional[str] = Field(default=None, alias="numeroPedido")
    created_at: Optional[datetime] = None

    @property
    def total_value(self) -> float:
        """Quantidade vezes valor unitário; itens sem valor contam como zero."""
        return self.quantity * (self.unit_value or 0)
