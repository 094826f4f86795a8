"""Demo roster for development/testing."""

from velvet_rope.llm import OfflineLLM
from velvet_rope.models import PipelineState
from velvet_rope.pipeline.orchestrator import PipelineOrchestrator
from velvet_rope.roster import parse_csv
from velvet_rope.store import StageStore

DEMO_CSV = """\
id,firstName,lastName,email,company,title,industry,yearsExperience,skills,interests,connectionStrength,dealValue,eventHistory,personalityType,networkSize,influenceScore
1,Maya,Okafor,maya.okafor@lumen.ai,Lumen AI,Head of ML,Artificial Intelligence,11,PyTorch;LLM fine-tuning;MLOps,Robotics;Climbing,hot,120000,NeurIPS 2024;AI Summit,INTJ,2400,88
2,Daniel,Reyes,d.reyes@fintrail.io,Fintrail,CTO,Fintech,15,Distributed systems;Go;Payments,Open banking;Chess,warm,90000,Money20/20,ENTJ,3100,91
3,Priya,Nair,priya@cellwise.bio,Cellwise,Research Scientist,Biotech,7,Genomics;Python;Statistics,Protein design;Running,cold,15000,ISMB 2023,INFJ,800,64
4,Tom,Becker,tom.becker@gridnorth.com,GridNorth,Product Manager,Energy,9,Roadmapping;SQL;Stakeholder management,Batteries;Sailing,warm,40000,,ESTJ,1500,70
5,Aiko,Tanaka,aiko@pixelforge.jp,PixelForge,Design Lead,Gaming,12,Figma;Unity;Prototyping,Generative art;Anime,hot,60000,GDC 2024;Tokyo Game Show,ENFP,2900,83
6,Lucas,Moreau,lucas@vaultline.eu,Vaultline,Security Engineer,Cybersecurity,8,Rust;Threat modeling;Fuzzing,CTFs;Cycling,cold,20000,DEF CON 31,ISTP,950,67
7,Fatima,Al-Sayed,fatima@medisync.health,MediSync,Founder & CEO,Healthtech,14,Fundraising;Clinical workflows;Leadership,Digital health;Poetry,hot,250000,HLTH 2024;Web Summit,ENFJ,5200,95
8,Jonas,Lindqvist,jonas@northdata.se,NorthData,Data Engineer,Data Infrastructure,6,Spark;Airflow;dbt,Open source;Skiing,warm,25000,Data Council,ISTJ,700,58
9,Grace,Mensah,grace@agrisense.africa,AgriSense,COO,Agritech,10,Operations;Supply chain;IoT,Food security;Gardening,warm,70000,AfricArena,ESFJ,1800,76
10,Ravi,Kapoor,ravi@quantforge.com,QuantForge,Quant Researcher,Finance,5,C++;Time series;Reinforcement learning,Poker;Marathons,cold,30000,,INTP,400,52
11,Elena,Petrova,elena@orbitlabs.space,Orbit Labs,Systems Engineer,Aerospace,13,Embedded C;Simulation;Systems design,Astronomy;Piano,warm,80000,SmallSat 2024,ISFJ,1200,72
12,Marcus,Hill,marcus@buildloop.dev,BuildLoop,Developer Advocate,Developer Tools,8,TypeScript;Public speaking;DevRel,Podcasting;Skateboarding,hot,35000,JSConf;KubeCon,ESFP,6100,86
13,Sofia,Castillo,sofia@verdant.city,Verdant,Urban Planner,Climate Tech,9,GIS;Policy;Community engagement,Cities;Photography,cold,10000,COP28,INFP,650,61
14,Wei,Zhang,wei.zhang@chipmint.com,ChipMint,Hardware Architect,Semiconductors,16,Verilog;Computer architecture;FPGA,Quantum computing;Tea,warm,150000,Hot Chips,INTJ,2100,89
15,Hannah,Schmidt,hannah@learnly.de,Learnly,Head of Growth,Edtech,7,Growth marketing;Analytics;Copywriting,Languages;Yoga,hot,45000,SaaStr Annual,ENTP,3800,79
"""


def create_demo_data(store: StageStore) -> PipelineState:
    """Wipe the pipeline and load the demo roster (lands on the profiles stage)."""
    orchestrator = PipelineOrchestrator(store, OfflineLLM())
    return orchestrator.load_roster(parse_csv(DEMO_CSV))
