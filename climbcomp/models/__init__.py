from .competition import Competition
from .climber import Climber
from .boulder_score import BoulderScore
from .speed_qualification_score import SpeedQualificationScore
from .speed_finals_match import SpeedFinalsMatch
