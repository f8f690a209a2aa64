"""
Line Item Catalog

Billable pathology tests with prices in BDT. Used to derive the line
item charge from a set of selected codes.
"""

from decimal import Decimal
from typing import Iterable

from clinicdesk.models.financial import LineItem

# (code, name, category, price)
PATHOLOGY_TESTS: list[tuple[str, str, str, int]] = [
    ("TC-DC-HB-ESR", "TC,DC,HB%,ESR (Blood CP)", "Hematology", 200),
    ("PROTHROMBIN", "Prothombin Time", "Hematology", 1000),
    ("HB", "HB%", "Hematology", 200),
    ("BT-CT", "BT, CT", "Hematology", 350),
    ("CE", "CE (Circulating Eosin Phil)", "Hematology", 200),
    ("PLATELET-COUNT", "Platelet Count", "Hematology", 200),
    ("BLOOD-GROUP-RH", "Blood Group & Rh Factor", "Hematology", 100),
    ("CROSS-MATCH", "Cross Match (Screening Test)", "Hematology", 1000),
    ("CBC", "CBC", "Hematology", 200),
    ("TOTAL-EOSINOPHIL", "Total Esonophil Count", "Hematology", 300),
    ("RBS", "RBS (Random Blood Sugar)", "Biochemistry", 100),
    ("RBS-CUS", "RBS (Random Blood Sugar) with CUS", "Biochemistry", 200),
    ("FBS", "Fasting Blood Sugar", "Biochemistry", 100),
    ("2HABF", "2 Hours After Breakfast (2HABF)", "Biochemistry", 100),
    ("2HABF-CUS", "2 Hours After Breakfast (2HABF) with CUS", "Biochemistry", 200),
    ("2H-75GM", "2 Hours After 75gm Glucose Drink", "Biochemistry", 100),
    ("2H-75GM-CUS", "2 Hours After 75gm Glucose Drink with CUS", "Biochemistry", 200),
    ("OGTT", "OGTT", "Biochemistry", 300),
    ("HBA1C", "HbA1C", "Diabetes Monitoring", 1000),
    ("ICT-MALARIA", "ICT Malaria", "Infectious Disease", 600),
    ("MP", "MP (Malaria Parasite)", "Infectious Disease", 200),
    ("ICT-TB", "ICT for TB", "Infectious Disease", 600),
    ("ICT-KALA-AZAR", "ICT for Kala-Azar (Ag/Ab)", "Infectious Disease", 800),
    ("ANTI-HIV", "Anti HIV (ICT)", "Infectious Disease", 700),
    ("WIDAL", "Widal Test", "Infectious Disease", 500),
    ("ASO", "ASO Titre", "Immunology", 500),
    ("CRP", "CRP", "Immunology", 500),
    ("RA-TEST", "R.A. Test", "Immunology", 500),
    ("RA-TURBIDIMETRIC", "R.A. Test (Turbidimetric)", "Immunology", 600),
    ("TPHA", "TPHA", "Serology", 500),
    ("VDRL", "VDRL", "Serology", 300),
    ("HBSAG", "HBsAg", "Serology", 500),
    ("HBSAG-ELISA", "HBsAg (Ellsa)", "Serology", 1200),
    ("HCV", "HCV", "Serology", 600),
    ("HPV-DNA", "HPV DNA Test", "Serology", 3000),
    ("S-BILIRUBIN", "S. Bilirubin", "Liver Function", 250),
    ("SGPT", "SGPT (ALT)", "Liver Function", 400),
    ("SGOT", "SGOT (AST)", "Liver Function", 400),
    ("S-ALBUMIN", "S.Albumin", "Liver Function", 500),
    ("S-ALKALINE-PHOSPHATASE", "S. Alkaline Phosphatase", "Liver Function", 500),
    ("S-CREATININE", "Serum Creatinine", "Kidney Function", 400),
    ("S-UREA", "Serum Urea", "Kidney Function", 400),
    ("BLOOD-UREA", "Blood Urea", "Kidney Function", 400),
    ("S-URIC-ACID", "Serum Uric Acid", "Kidney Function", 500),
    ("S-AMYLASE", "Serum Amylase", "Enzymes", 1000),
    ("LIPID-PROFILE", "Lipid Profile", "Biochemistry", 1000),
    ("ELECTROLYTE", "Electrolyte", "Electrolytes", 1000),
    ("FT3", "Free Trilodothyorine (FT3)", "Thyroid Function", 1000),
    ("FT4", "Free Thyroxine (FT4)", "Thyroid Function", 1000),
    ("T3-T4-TSH", "T3, T4 & TSH", "Thyroid Function", 2400),
    ("TSH", "TSH", "Thyroid Function", 900),
    ("LH", "LH", "Hormones", 1200),
    ("FSH", "FSH", "Hormones", 1200),
    ("PROLACTIN", "Prolactin", "Hormones", 1200),
    ("TESTOSTERONE", "Testosterone", "Hormones", 1200),
    ("OESTROGEN", "Oestrogen", "Hormones", 1200),
    ("CA-125", "CA-125", "Tumor Markers", 1200),
    ("BETA-HCG", "Beta HCG", "Tumor Markers", 1200),
    ("CEA", "CEA", "Tumor Markers", 1200),
    ("CA-19-9", "C-A 19-9", "Tumor Markers", 1200),
    ("AFP", "α-Fetoprotein", "Tumor Markers", 1200),
    ("AMH", "AMH", "Hormones", 3000),
    ("URINE-RE", "Urine R/E", "Urinalysis", 200),
    ("URINE-CS", "Urine for C/S", "Urinalysis", 1000),
    ("RA-TEST-URINE", "R/A test", "Urinalysis", 200),
    ("HIGH-VAG-SWAB", "High Vag Swab C/S", "Microbiology", 1000),
    ("SEMEN-CS", "Semen C/S", "Microbiology", 1000),
    ("SEMEN-ANALYSIS", "Semen Analysis", "Microbiology", 600),
    ("PREGNANCY", "Pregnancy", "Pregnancy", 250),
    ("ECG", "ECG", "Cardiology", 300),
    ("COLONOSCOPY", "Colonoscopy", "Endoscopy", 5000),
    ("USG-WHOLE-ABDOMEN", "Whole Abdomen", "Ultrasound", 1000),
    ("USG-LOWER-ABDOMEN", "Lower Abdomen", "Ultrasound", 800),
    ("USG-HBS-LIVER-GB", "HBS/Liver & Gall Bladder", "Ultrasound", 900),
    ("USG-PELVIC", "Pelvic Organs", "Ultrasound", 900),
    ("USG-PREGNANCY", "Pregnancy Profile", "Ultrasound", 900),
    ("USG-KUB", "Kidney & Urinary Bladder (KUB)", "Ultrasound", 900),
    ("USG-BIOPHYSICAL", "Biophysical Profile", "Ultrasound", 1100),
    ("USG-BREAST-SINGLE", "Breast", "Ultrasound", 1000),
    ("USG-BREAST-BOTH", "Breast (Both)", "Ultrasound", 2000),
    ("USG-4D-DUPLEX", "Color Duplex-4D (Right/Left)", "Ultrasound", 2000),
    ("TVS", "TVS", "Ultrasound", 2000),
    ("PS", "P/s", "Other", 500),
    ("PS-EXAM", "Ps Exam", "Other", 500),
    ("VITAMIN-D", "Vitamin D (25-OH Vit-D Total)", "Vitamins", 2200),
]


class LineItemCatalog:
    """
    Lookup table of line items keyed by code.

    Usage:
        catalog = LineItemCatalog.default()
        catalog.charge(["HB", "CBC"])  # Decimal("400")
    """

    def __init__(self, items: Iterable[LineItem]):
        self._items: dict[str, LineItem] = {}
        for item in items:
            self._items[item.code] = item

    @classmethod
    def default(cls) -> "LineItemCatalog":
        return cls(
            LineItem(code=code, name=name, category=category, price=Decimal(price))
            for code, name, category, price in PATHOLOGY_TESTS
        )

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, code: object) -> bool:
        return code in self._items

    def lookup(self, code: str) -> LineItem | None:
        return self._items.get(code)

    def charge(self, codes: Iterable[str]) -> Decimal:
        """Sum of prices for the given codes. Unknown codes contribute zero."""
        total = Decimal("0")
        for code in codes:
            item = self._items.get(code)
            if item is not None:
                total += item.price
        return total

    def categories(self) -> list[str]:
        return sorted({item.category for item in self._items.values()})

    def by_category(self, category: str) -> list[LineItem]:
        return [item for item in self._items.values() if item.category == category]

    def search(self, text: str) -> list[LineItem]:
        """Case-insensitive match on code or name."""
        needle = text.strip().lower()
        if not needle:
            return list(self._items.values())
        return [
            item for item in self._items.values()
            if needle in item.code.lower() or needle in item.name.lower()
        ]
