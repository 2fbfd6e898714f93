import pytest

from data_loader import DataStore


MARKET_CSV = """MSA,Product,LAT,LON,Market Size,Revenue per Company,Risk,Price,Lending Volume Annual Change,Loan to Deposit Ratio,Premium_Discount,Pricing_Rationality,HHI_Score,Economic_Growth_Score,Risk_Score,Premium_Discount_Score,Pricing_Rationality_Score,Attractiveness_Category
TX-Dallas-Fort Worth-Arlington,Lending,32.8,-96.8,1000000,5000,1.2,3.5,0.05,0.8,Premium,Rational,Low,High,Low,Premium,Rational,Highly Attractive
NY-NJ-New York-Newark-Jersey City,Lending,40.7,-74.0,3000000,8000,2.5,3.0,0.02,0.9,Par,Overpriced (Opportunity),High,Medium,Medium,Par,Overpriced (Opportunity),Attractive
CA-Los Angeles-Long Beach-Anaheim,Lending,34.0,-118.2,2000000,6000,3.0,2.8,-0.01,0.7,Discount,Underpriced (Risk),Medium,Low,High,Discount,Underpriced (Risk),Challenging
IL-IN-WI-Chicago-Naperville-Elgin,Lending,41.9,-87.6,500000,4000,2.0,3.1,0.03,0.85,Par,Rational,Medium,Medium,Medium,Par,Rational,Neutral
TX-Dallas-Fort Worth-Arlington,Deposits,32.8,-96.8,400000,2000,1.0,2.0,0.01,0.5,Par,Rational,Low,High,Low,Par,Rational,Attractive
"""

OPPORTUNITY_CSV = """Provider,MSA,Product,Market Share,Market Size,Defend $,Included_In_Ranking,Overall_Opportunity_Rank
Bank A,TX-Dallas-Fort Worth-Arlington,Lending,0.2,1000000,50000,TRUE,2
Bank B,TX-Dallas-Fort Worth-Arlington,Lending,0.1,1000000,10000,TRUE,1
Bank A,NY-NJ-New York-Newark-Jersey City,Lending,0.05,3000000,30000,TRUE,3
Bank C,CA-Los Angeles-Long Beach-Anaheim,Lending,0.3,2000000,100000,FALSE,
Bank A,IL-IN-WI-Chicago-Naperville-Elgin,Lending,0.15,500000,20000,TRUE,4
Bank A,TX-Dallas-Fort Worth-Arlington,Deposits,0.2,400000,5000,TRUE,5
"""

ECONOMICS_CSV = """MSA,Unemp_2023,Unemp_2024,GDP_K,GDP_YoY,Per_Capita_Income,Income_YoY,Pop_2023,Pop_2024
TX-Dallas-Fort Worth,3.8,4.1,598000000,0.045,65000,0.052,7900000,8100000
NY-New York-Newark,4.2,4.4,2100000000,2.1,82000,3.4,19500000,19400000
"""


@pytest.fixture
def market_csv() -> str:
    return MARKET_CSV


@pytest.fixture
def opportunity_csv() -> str:
    return OPPORTUNITY_CSV


@pytest.fixture
def economics_csv() -> str:
    return ECONOMICS_CSV


@pytest.fixture
def loaded_store() -> DataStore:
    store = DataStore()
    store.load_from_text(MARKET_CSV, OPPORTUNITY_CSV, ECONOMICS_CSV)
    return store
