"""
Rule-based focus/avoid/insight text, one entry per (category, stimulus).

Used whenever generation fails or its output is rejected by the
validator. Every entry here must itself pass the validator.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from services.directive_planner import Category, Stimulus


@dataclass(frozen=True)
class FocusAvoidTemplate:
    session_focus: str
    avoid_cue: str
    summary: str
    detail: str


TEMPLATES: Dict[Tuple[Category, Stimulus], FocusAvoidTemplate] = {
    # --- STRENGTH ---
    (Category.STRENGTH, Stimulus.OVERLOAD): FocusAvoidTemplate(
        session_focus="Progressive tension on the main lifts. Own every rep.",
        avoid_cue="Avoid grinding reps once bar speed drops.",
        summary="Recovery supports a loading day. Mechanical capacity is there to build on.",
        detail="Add weight only while technique holds. Stop sets one or two reps short of failure.",
    ),
    (Category.STRENGTH, Stimulus.MAINTENANCE): FocusAvoidTemplate(
        session_focus="Moderate loads, clean movement, leave reps in reserve.",
        avoid_cue="Avoid chasing new personal records today.",
        summary="Steady state. Keep the strength you have without adding fatigue.",
        detail="Work at roughly 70 to 80 percent of your usual load with full control.",
    ),
    (Category.STRENGTH, Stimulus.FLUSH): FocusAvoidTemplate(
        session_focus="Light loads for blood flow and mobility.",
        avoid_cue="Avoid anything that feels heavy or hard.",
        summary="Recovery is the priority. Light movement clears fatigue from recent sessions.",
        detail="Use a fraction of normal loads and favour range of motion over weight.",
    ),
    (Category.STRENGTH, Stimulus.TEST): FocusAvoidTemplate(
        session_focus="Work up to a heavy single with full warm-up sets.",
        avoid_cue="Avoid testing a lift with poor technique.",
        summary="Readiness is high enough to check where your strength stands.",
        detail="Warm up gradually, take long rests, and stop if the bar slows sharply.",
    ),
    # --- ENDURANCE ---
    (Category.ENDURANCE, Stimulus.OVERLOAD): FocusAvoidTemplate(
        session_focus="Extend duration or pace beyond your recent sessions.",
        avoid_cue="Avoid starting faster than you can finish.",
        summary="Aerobic capacity has room to grow today. A longer or quicker effort fits.",
        detail="Build into the session and hold the harder portion for the second half.",
    ),
    (Category.ENDURANCE, Stimulus.MAINTENANCE): FocusAvoidTemplate(
        session_focus="Conversational pace, steady and relaxed.",
        avoid_cue="Avoid drifting above easy effort on the climbs.",
        summary="Keep the aerobic base ticking over while recovery catches up.",
        detail="You should be able to speak in full sentences for the whole session.",
    ),
    (Category.ENDURANCE, Stimulus.FLUSH): FocusAvoidTemplate(
        session_focus="Easy movement to circulate blood. Keep it gentle.",
        avoid_cue="Avoid impact and intense efforts; no jumping or sprinting.",
        summary="The body is carrying strain. Gentle movement helps without adding load.",
        detail="Walk, spin or swim at a very easy effort. Stay well under your heart rate cap.",
    ),
    (Category.ENDURANCE, Stimulus.TEST): FocusAvoidTemplate(
        session_focus="Controlled time trial over a familiar route.",
        avoid_cue="Avoid going out too fast in the first minutes.",
        summary="Conditions are right to benchmark aerobic fitness.",
        detail="Pace evenly and note the result as a reference for later tests.",
    ),
    # --- NEURAL ---
    (Category.NEURAL, Stimulus.OVERLOAD): FocusAvoidTemplate(
        session_focus="Short, sharp efforts with full recovery between them.",
        avoid_cue="Avoid reps once speed drops off.",
        summary="The nervous system is fresh. Quality speed work fits today.",
        detail="Keep each effort brief and rest long enough that the next one is just as quick.",
    ),
    (Category.NEURAL, Stimulus.MAINTENANCE): FocusAvoidTemplate(
        session_focus="Crisp technique drills at moderate speed.",
        avoid_cue="Avoid turning drills into conditioning.",
        summary="Keep coordination sharp without taxing recovery.",
        detail="Low volume, high quality. Finish feeling better than you started.",
    ),
    (Category.NEURAL, Stimulus.FLUSH): FocusAvoidTemplate(
        session_focus="Slow breathing and calm, easy movement.",
        avoid_cue="Avoid fast or intense work; no jumps.",
        summary="The nervous system needs quiet today.",
        detail="Favour breath work, walking and light mobility over anything fast.",
    ),
    (Category.NEURAL, Stimulus.TEST): FocusAvoidTemplate(
        session_focus="Reaction and speed check after a thorough warm-up.",
        avoid_cue="Avoid testing while tired or distracted.",
        summary="Readiness supports a short speed benchmark.",
        detail="A few quality attempts are enough. Stop when times start slipping.",
    ),
    # --- REGULATION ---
    (Category.REGULATION, Stimulus.OVERLOAD): FocusAvoidTemplate(
        session_focus="Longer breathwork block with slow exhales.",
        avoid_cue="Avoid screens and caffeine late in the day.",
        summary="Give recovery more room than usual today.",
        detail="Extend breathing or meditation time and protect tonight's sleep window.",
    ),
    (Category.REGULATION, Stimulus.MAINTENANCE): FocusAvoidTemplate(
        session_focus="Ten minutes of calm breathing.",
        avoid_cue="Avoid stacking stressful tasks back to back.",
        summary="A short daily reset keeps stress from accumulating.",
        detail="Pick a quiet moment and breathe slowly through the nose.",
    ),
    (Category.REGULATION, Stimulus.FLUSH): FocusAvoidTemplate(
        session_focus="Gentle mobility and slow breathing. Rest is the work today.",
        avoid_cue="Avoid intense effort; no impact or jumping.",
        summary="Recovery is low. Today is for rest and light movement only.",
        detail="Keep heart rate low, go to bed early and let the body repair.",
    ),
    (Category.REGULATION, Stimulus.TEST): FocusAvoidTemplate(
        session_focus="Check resting breath rate after five quiet minutes.",
        avoid_cue="Avoid measuring straight after exercise or coffee.",
        summary="A calm check of how settled the nervous system is.",
        detail="Compare today's breath count with earlier readings taken the same way.",
    ),
}


def get_template(category: Category, stimulus: Stimulus) -> FocusAvoidTemplate:
    return TEMPLATES[(category, stimulus)]
