"""Static rule tables for the rule classifier.

Tables are immutable tuples compiled once at import and shared by every
pipeline run. Order matters: the first matching rule wins, so specific
brands must precede the brands they contain (``Uber Eats`` before ``Uber``).

Payment intermediaries (PayPal, Stripe, Apple Pay) are intentionally absent:
the merchant behind them is unknown and must go to the model tier.
"""

import re
from dataclasses import dataclass

from hybrid_categorizer.models import TypeHint

MERCHANT_CONFIDENCE = 0.9
GENERIC_MERCHANT_CONFIDENCE = 0.8
TRANSFER_NAMED_CONFIDENCE = 0.85
TRANSFER_CONFIDENCE = 0.8
OPERATION_CONFIDENCE = 0.85

TRANSFER_LABEL = "Transfer"


@dataclass(frozen=True)
class MerchantRule:
    pattern: re.Pattern[str]
    label: str
    category: str
    confidence: float = MERCHANT_CONFIDENCE


@dataclass(frozen=True)
class TransferRule:
    pattern: re.Pattern[str]
    label: str


@dataclass(frozen=True)
class OperationRule:
    pattern: re.Pattern[str]
    label: str
    type_hint: TypeHint
    confidence: float = OPERATION_CONFIDENCE


def _merchant(
    regex: str,
    label: str,
    category: str,
    confidence: float = MERCHANT_CONFIDENCE,
) -> MerchantRule:
    return MerchantRule(re.compile(regex, re.IGNORECASE), label, category, confidence)


def _generic(regex: str, label: str, category: str) -> MerchantRule:
    return _merchant(regex, label, category, GENERIC_MERCHANT_CONFIDENCE)


_COMMON_MERCHANTS = (
    _merchant(r"\bUBER\s*EATS\b", "Uber Eats", "Food Delivery"),
    _merchant(r"\bGLOVO\b", "Glovo", "Food Delivery"),
    _merchant(r"\bDELIVEROO\b", "Deliveroo", "Food Delivery"),
    _merchant(r"\bJUST\s*EAT\b", "Just Eat", "Food Delivery"),
    _merchant(r"\bPRIME\s*VIDEO\b", "Prime Video", "Subscriptions"),
    _merchant(r"\bYOUTUBE\s*PREMIUM\b", "YouTube Premium", "Subscriptions"),
    _merchant(r"\bDISNEY\s*(?:\+|PLUS)", "Disney+", "Subscriptions"),
    _merchant(r"\bSPOTIFY\b", "Spotify", "Subscriptions"),
    _merchant(r"\bNETFLIX\b", "Netflix", "Subscriptions"),
    _merchant(r"\bHBO\b", "HBO", "Subscriptions"),
    _merchant(r"\b(?:APPLE|ITUNES|APP\s*STORE)\b", "Apple", "Subscriptions"),
    _merchant(r"\bGOOGLE\b", "Google", "Subscriptions"),
    _merchant(r"\bMICROSOFT\b", "Microsoft", "Subscriptions"),
    _merchant(r"\bAMAZON\b", "Amazon", "Shopping"),
    _merchant(r"\bUBER\b", "Uber", "Taxi/Rideshare"),
    _merchant(r"\bBOLT\b", "Bolt", "Taxi/Rideshare"),
    _merchant(r"\bCABIFY\b", "Cabify", "Taxi/Rideshare"),
    _merchant(r"\bFREENOW\b|\bFREE\s+NOW\b", "Free Now", "Taxi/Rideshare"),
    _merchant(r"\bRYANAIR\b", "Ryanair", "Travel"),
    _merchant(r"\bVUELING\b", "Vueling", "Travel"),
    _merchant(r"\bIBERIA\b", "Iberia", "Travel"),
    _merchant(r"\bEASYJET\b", "easyJet", "Travel"),
    _merchant(r"\bBOOKING\.?COM\b", "Booking.com", "Travel"),
    _merchant(r"\bAIRBNB\b", "Airbnb", "Travel"),
    _merchant(r"\bREVOLUT\b", "Revolut", "Bank Fees"),
    _merchant(r"\bWHATSAPP\b", "WhatsApp", "Subscriptions"),
    _merchant(r"\bZOOM\b", "Zoom", "Subscriptions"),
    _merchant(r"\bGYM\s*PASS\b", "GymPass", "Health & Fitness"),
    _merchant(r"\bPELOTON\b", "Peloton", "Health & Fitness"),
    _merchant(r"\bH\s*&\s*M\b", "H&M", "Shopping"),
    _merchant(r"\bZARA\b", "Zara", "Shopping"),
    _merchant(r"\bIKEA\b", "IKEA", "Shopping"),
    _merchant(r"\bDECATHLON\b", "Decathlon", "Shopping"),
    _merchant(r"\bALDI\b", "Aldi", "Groceries"),
    _merchant(r"\bLIDL\b", "Lidl", "Groceries"),
    _merchant(r"\bCARREFOUR\b", "Carrefour", "Groceries"),
    _merchant(r"\b(?:MCDONALDS?|MC\s*DONALD'?S?)\b", "McDonald's", "Restaurants"),
    _merchant(r"\bBURGER\s*KING\b", "Burger King", "Restaurants"),
    _merchant(r"\bKFC\b", "KFC", "Restaurants"),
    _merchant(r"\bSTARBUCKS\b", "Starbucks", "Coffee"),
    _merchant(r"\bDOMINO'?S?\b", "Domino's", "Restaurants"),
)

# Spain first: most imported statements are Spanish.
_ES_MERCHANTS = (
    _merchant(r"\bMERCADONA\b", "Mercadona", "Groceries", 0.95),
    _merchant(r"\bALCAMPO\b", "Alcampo", "Groceries"),
    _merchant(r"\bDIA\b", "Dia", "Groceries"),
    _merchant(r"\bEROS?KI\b", "Eroski", "Groceries"),
    _merchant(r"\bHIPERCOR\b", "Hipercor", "Groceries"),
    _merchant(r"\bCONSUM\b", "Consum", "Groceries"),
    _merchant(r"\bBON\s*PREU\b", "Bon Preu", "Groceries"),
    _merchant(r"\bAHORRAM[AÁ]S\b", "Ahorramás", "Groceries"),
    _merchant(r"\bCONDIS\b", "Condis", "Groceries"),
    _merchant(r"\bENDESA\b", "Endesa", "Utilities"),
    _merchant(r"\bIBERDROLA\b", "Iberdrola", "Utilities"),
    _merchant(r"\bNATURGY\b", "Naturgy", "Utilities"),
    _merchant(r"\bVODAFONE\b", "Vodafone", "Utilities"),
    _merchant(r"\bMOVISTAR\b", "Movistar", "Utilities"),
    _merchant(r"\bORANGE\b", "Orange", "Utilities"),
    _merchant(r"\bYOIGO\b", "Yoigo", "Utilities"),
    _merchant(r"\bDIGI\s*MOBIL\b", "Digi", "Utilities"),
    _generic(r"\bAGUAS?\s+DE\b", "Aguas", "Utilities"),
    _merchant(r"\bRENFE\b", "Renfe", "Public Transport"),
    _merchant(r"\bTMB\b", "TMB", "Public Transport"),
    _merchant(r"\bEMT\b", "EMT", "Public Transport"),
    _generic(r"\bMETRO\b", "Metro", "Public Transport"),
    _merchant(r"\b(?:REPSOL|CEPSA|GALP|SHELL|BP)\b", "Gas Station", "Fuel"),
    _generic(r"\bPARKING\b", "Parking", "Parking"),
    _merchant(r"\bTELEPIZZA\b", "Telepizza", "Restaurants"),
    _merchant(r"\bVIPS\b", "VIPS", "Restaurants"),
    _merchant(r"\b100\s*MONTADITOS\b", "100 Montaditos", "Restaurants"),
    _merchant(r"\bRODILLA\b", "Rodilla", "Restaurants"),
    _merchant(r"\bEL\s*CORTE\s*INGL[EÉ]S\b", "El Corte Inglés", "Shopping"),
    _merchant(r"\bPRIMARK\b", "Primark", "Shopping"),
    _merchant(r"\bMEDIA\s*MARKT\b", "MediaMarkt", "Shopping"),
    _merchant(r"\bWORTEN\b", "Worten", "Shopping"),
    _merchant(r"\bFNAC\b", "Fnac", "Shopping"),
    _merchant(r"\bLEROY\s*MERLIN\b", "Leroy Merlin", "Shopping"),
    _generic(r"\bRESTAURANTE?\b", "Restaurant", "Restaurants"),
    _generic(r"\bCAFETER[IÍ]A\b", "Cafeteria", "Coffee"),
)

_EN_MERCHANTS = (
    _merchant(r"\bTESCO\b", "Tesco", "Groceries"),
    _merchant(r"\bSAINSBURY'?S?\b", "Sainsbury's", "Groceries"),
    _merchant(r"\bASDA\b", "ASDA", "Groceries"),
    _merchant(r"\bMORRISONS?\b", "Morrisons", "Groceries"),
    _merchant(r"\bWAITROSE\b", "Waitrose", "Groceries"),
    _merchant(r"\bWALMART\b", "Walmart", "Groceries"),
    _merchant(r"\bWHOLE\s*FOODS\b", "Whole Foods", "Groceries"),
    _merchant(r"\bTRADER\s*JOE'?S?\b", "Trader Joe's", "Groceries"),
    _merchant(r"\bKROGER\b", "Kroger", "Groceries"),
    _merchant(r"\bCOSTCO\b", "Costco", "Groceries"),
    _merchant(r"\bBRITISH\s*GAS\b", "British Gas", "Utilities"),
    _merchant(r"\bOCTOPUS\s*ENERGY\b", "Octopus Energy", "Utilities"),
    _merchant(r"\bTHAMES\s*WATER\b", "Thames Water", "Utilities"),
    _merchant(r"\bVIRGIN\s*MEDIA\b", "Virgin Media", "Utilities"),
    _merchant(r"\bTFL\b", "TfL", "Public Transport"),
    _merchant(r"\bNATIONAL\s*RAIL\b", "National Rail", "Public Transport"),
    _merchant(r"\b(?:ESSO|TEXACO)\b", "Gas Station", "Fuel"),
    _merchant(r"\bSUBWAY\b", "Subway", "Restaurants"),
    _merchant(r"\bPRET\s*A\s*MANGER\b", "Pret", "Restaurants"),
    _merchant(r"\bGREGGS\b", "Greggs", "Restaurants"),
    _merchant(r"\bNANDO'?S?\b", "Nando's", "Restaurants"),
    _merchant(r"\bWAGAMAMA\b", "Wagamama", "Restaurants"),
    _merchant(r"\bARGOS\b", "Argos", "Shopping"),
    _merchant(r"\bJOHN\s*LEWIS\b", "John Lewis", "Shopping"),
    _merchant(r"\bCURRYS\b", "Currys", "Shopping"),
    _merchant(r"\bBEST\s*BUY\b", "Best Buy", "Shopping"),
)

_FR_MERCHANTS = (
    _merchant(r"\bAUCHAN\b", "Auchan", "Groceries"),
    _merchant(r"\bLECLERC\b", "Leclerc", "Groceries"),
    _merchant(r"\bINTERMARCH[EÉ]\b", "Intermarché", "Groceries"),
    _merchant(r"\bMONOPRIX\b", "Monoprix", "Groceries"),
    _merchant(r"\bFRANPRIX\b", "Franprix", "Groceries"),
    _merchant(r"\bPICARD\b", "Picard", "Groceries"),
    _merchant(r"\bEDF\b", "EDF", "Utilities"),
    _merchant(r"\bENGIE\b", "Engie", "Utilities"),
    _merchant(r"\bSFR\b", "SFR", "Utilities"),
    _merchant(r"\bBOUYGUES\b", "Bouygues", "Utilities"),
    _merchant(r"\bSNCF\b", "SNCF", "Public Transport"),
    _merchant(r"\bRATP\b", "RATP", "Public Transport"),
    _merchant(r"\bTOTAL\s*ENERGIES\b", "Gas Station", "Fuel"),
    _merchant(r"\bDARTY\b", "Darty", "Shopping"),
    _merchant(r"\bSEPHORA\b", "Sephora", "Shopping"),
    _merchant(r"\bGALERIES?\s*LAFAYETTE\b", "Galeries Lafayette", "Shopping"),
    _generic(r"\bBOULANGERIE\b", "Bakery", "Groceries"),
    _generic(r"\bBRASSERIE\b", "Brasserie", "Restaurants"),
)

_DE_MERCHANTS = (
    _merchant(r"\bREWE\b", "Rewe", "Groceries"),
    _merchant(r"\bEDEKA\b", "Edeka", "Groceries"),
    _merchant(r"\bKAUFLAND\b", "Kaufland", "Groceries"),
    _merchant(r"\bNETTO\b", "Netto", "Groceries"),
    _merchant(r"\bROSSMANN\b", "Rossmann", "Shopping"),
    _merchant(r"\bDM\s*DROGERIE\b", "dm", "Shopping"),
    _merchant(r"\bDEUTSCHE\s*BAHN\b", "Deutsche Bahn", "Public Transport"),
)

MERCHANT_RULES: tuple[MerchantRule, ...] = (
    _COMMON_MERCHANTS + _ES_MERCHANTS + _EN_MERCHANTS + _FR_MERCHANTS + _DE_MERCHANTS
)

# Peer-payment brands label with their own name, everything else is a plain transfer.
PEER_PAYMENT_RULES: tuple[TransferRule, ...] = (
    TransferRule(re.compile(r"\bBIZUM\b", re.IGNORECASE), "Bizum"),
    TransferRule(re.compile(r"\bVENMO\b", re.IGNORECASE), "Venmo"),
    TransferRule(re.compile(r"\bZELLE\b", re.IGNORECASE), "Zelle"),
    TransferRule(re.compile(r"\bLYDIA\b", re.IGNORECASE), "Lydia"),
    TransferRule(re.compile(r"\bPAYLIB\b", re.IGNORECASE), "Paylib"),
    TransferRule(re.compile(r"\bTWINT\b", re.IGNORECASE), "Twint"),
    TransferRule(re.compile(r"\bSWISH\b", re.IGNORECASE), "Swish"),
    TransferRule(re.compile(r"\bSATISPAY\b", re.IGNORECASE), "Satispay"),
    TransferRule(re.compile(r"\bMB\s*WAY\b", re.IGNORECASE), "MB Way"),
)

TRANSFER_RULES: tuple[TransferRule, ...] = (
    TransferRule(
        re.compile(
            r"\b(?:BANK\s+TRANSFER|STANDING\s+ORDER|ORDEN\s+PERMANENTE|FASTER\s+PAYMENT"
            r"|TRANSFERENCIA|TRANSFERENCE|TRANSFER|TRASPASO|TRANSF|TRF|SEPA|VIREMENT"
            r"|VIR(?=\s+(?:SEPA|INST\w*|RECU|EMIS|PERMANENT|DE|DU|VERS|POUR|M|MME|MLLE|MR)\b)"
            r"|[UÜ]BERWEISUNG|UEBERWEISUNG|DAUERAUFTRAG)\b",
            re.IGNORECASE,
        ),
        TRANSFER_LABEL,
    ),
)

OPERATION_RULES: tuple[OperationRule, ...] = (
    OperationRule(
        re.compile(
            r"\b(?:COMISI[OÓ]N(?:ES)?|FEES?|COMMISSION|FRAIS|AGIOS|GEB[UÜ]HR(?:EN)?|GEBUEHR(?:EN)?"
            r"|CUOTA\s+(?:DE\s+)?MANTENIMIENTO|OVERDRAFT)\b",
            re.IGNORECASE,
        ),
        "Bank Fee",
        "fee",
    ),
    OperationRule(
        re.compile(
            r"\b(?:ATM|CAJERO|RETIRADA|REINTEGRO|CASH\s+WITHDRAWAL|WITHDRAWAL|DISTRIBUTEUR"
            r"|RETRAIT|GELDAUTOMAT|BARGELD)\b",
            re.IGNORECASE,
        ),
        "ATM Withdrawal",
        "atm",
    ),
    OperationRule(
        re.compile(
            r"\b(?:N[OÓ]MINA|SALARIO|SUELDO|SALARY|PAYROLL|WAGES?|SALAIRE|PAIE|GEHALT|LOHN"
            r"|PENSI[OÓ]N|RETRAITE|RENTE)\b",
            re.IGNORECASE,
        ),
        "Salary",
        "salary",
    ),
    OperationRule(
        re.compile(
            r"\b(?:DEVOLUCI[OÓ]N|REEMBOLSO|REFUND|REVERSAL|CHARGEBACK|REMBOURSEMENT|ERSTATTUNG)\b",
            re.IGNORECASE,
        ),
        "Refund",
        "refund",
    ),
)

HONORIFICS = frozenset({
    # English
    "MR", "MRS", "MS", "MISS", "MISTER", "SIR", "MADAM",
    # French
    "M", "MME", "MLLE", "MONSIEUR", "MADAME", "MADEMOISELLE",
    # Spanish
    "SR", "SRA", "SRTA", "SRES", "SENOR", "SEÑOR", "SENORA", "SEÑORA",
    "DON", "DOÑA", "DONA", "D", "DA", "DN", "DNA", "DÑA",
    # Professional
    "DR", "DRA", "PROF", "ING", "LIC",
    # German
    "HERR", "FRAU",
})

# Words that sit between a transfer indicator and the counterpart name.
NAME_SKIP_WORDS = frozenset({
    "A", "AL", "DE", "DEL", "DESDE", "PARA", "POR", "EN",
    "TO", "FROM", "FOR", "BY",
    "VERS", "POUR", "DU", "DES",
    "AN", "VON", "FUR", "FÜR", "ZU",
    "SEPA", "PAGO", "PAYMENT", "REF", "CARD", "PHONE", "IBAN", "AUTH",
    "TRF", "TRANSF", "TRANSFER", "TRANSFERENCIA", "TRASPASO", "VIREMENT", "VIR", "BIZUM",
    "RECIBIDA", "RECIBIDO", "EMITIDA", "EMITIDO", "ENVIADA", "ENVIADO",
    "INMEDIATA", "ORDINARIA", "NACIONAL", "INTERNACIONAL", "FAVOR",
    "ORDEN", "ORDENANTE", "BENEFICIARIO", "CONCEPTO",
    "INCOMING", "OUTGOING", "RECEIVED", "SENT", "INSTANT",
    "RECU", "EMIS", "INST", "INSTANTANE", "PERMANENT",
    "ONLINE", "APP", "MOBILE", "BANK", "BANCO",
    "NOMINA", "NÓMINA", "SALARIO", "SUELDO", "SALARY", "PAYROLL", "SALAIRE", "GEHALT",
    "RECIBO", "RECIBOS", "SERVICIO", "SERVICIOS", "CUOTA", "MENSUAL", "ALQUILER",
    "DEVOLUCION", "DEVOLUCIÓN", "REEMBOLSO", "REFUND", "COMISION", "COMISIÓN",
})
