"""
Check-in prompt bank and selection.

Each prompt belongs to one time-of-day period. Selection avoids the prompts asked most
recently today; when a period has nothing new left it falls back to the whole period.
"""
from __future__ import annotations

import enum
import random
from collections.abc import Iterable
from dataclasses import dataclass

# Callers pass the prompts of this many latest check-ins today
RECENT_WINDOW = 3


class Period(str, enum.Enum):
    MORNING = "morning"  # 07:00 - 10:59
    NOON = "noon"        # 11:00 - 14:59
    EVENING = "evening"  # 15:00 - 20:59
    NIGHT = "night"      # 21:00 - 06:59


@dataclass(frozen=True)
class Question:
    id: str
    period: Period
    text: str


def current_period(hour: int) -> Period:
    if 7 <= hour <= 10:
        return Period.MORNING
    if 11 <= hour <= 14:
        return Period.NOON
    if 15 <= hour <= 20:
        return Period.EVENING
    return Period.NIGHT


def _bank(period: Period, prefix: str, texts: list[str]) -> list[Question]:
    return [Question(f"{prefix}{i:02d}", period, text) for i, text in enumerate(texts, start=1)]


QUESTIONS: tuple[Question, ...] = tuple(
    _bank(Period.MORNING, "M", [
        "新的一天，感觉充好电了吗？",
        "今天醒来的第一感觉是什么——精神饱满，还是想赖床？",
        "如果今天的精力是天气，现在是晴天还是多云？",
        "从床上起来顺利吗？还是跟被窝搏斗了好久？",
        "想象一下今天的工作，你觉得自己准备好了吗？",
        "昨晚睡得怎么样？感觉恢复了多少？",
        "现在让你跑 500 米，你觉得能跑动吗？",
        "今天的你，像刚充满电的手机，还是还剩半格电？",
        "早餐吃了吗？身体有没有准备好开始一天？",
        "如果用一个词形容现在的状态，你会说什么？",
        "今天有什么期待的事吗？想到它你有劲儿吗？",
        "深呼吸一下——感觉清醒还是还有点迷糊？",
        "昨天的疲惫清零了吗？还是还有一些残留？",
        "如果现在突然要开一个重要会议，你 hold 得住吗？",
        "今天像是能量满满的周一，还是还在「开机中」？",
        "闹钟响的时候你是自然醒的，还是被硬拽起来的？",
        "脑子现在转得快吗？想一个简单数学题试试？",
        "今天的你，愿意给自己的状态打几颗星？",
        "如果花园里的花是你的精力，今早它们看起来怎么样？",
        "出门前照照镜子——眼睛有神吗？",
    ])
    + _bank(Period.NOON, "N", [
        "半天过去了，精力还够用吗？",
        "上午的工作顺利吗？有没有被什么事消耗到？",
        "午饭吃了吗？吃完是精神了还是更困了？",
        "如果下午还有一场硬仗，你觉得自己能打吗？",
        "上午开了几个会？脑子还转得动吗？",
        "现在让你做一个需要高度专注的任务，你能进入状态吗？",
        "到目前为止，今天消耗了多少精力？花园还绿着吗？",
        "午休了吗？或者至少闭眼歇了一会儿？",
        "下午的日程你看了吗？想到它你什么感觉？",
        "如果有人现在约你下午茶，你想去还是只想躺着？",
        "上午有没有什么事让你特别费脑子？",
        "此刻的你，是「还能再战」还是「已经有点虚了」？",
        "午饭后犯困是正常的——但你现在困到什么程度？",
        "如果给上午的自己一个建议，你会说什么？",
        "你的肩膀和脖子现在紧不紧？身体在提醒你什么？",
        "从早上到现在，你的精力是一直在掉还是有回升过？",
        "今天到目前为止，有没有什么让你开心的小事？",
        "估算一下，你现在大概还剩多少精力？",
        "如果下午只做一件事，你还有精力做好它吗？",
        "中午的阳光不错，你感受到了吗？",
    ])
    + _bank(Period.EVENING, "E", [
        "一天快结束了，你现在什么感觉？",
        "如果精力是手机电量，你现在大概剩百分之多少？",
        "下班了吗？走出公司那一刻，是轻松还是疲惫？",
        "今天值得吗？你觉得精力花在对的地方了吗？",
        "回家路上的你，还有力气做点自己想做的事吗？",
        "有人现在约你吃饭，你想去还是只想回家？",
        "今天有没有某个时刻让你觉得特别累？",
        "如果用颜色形容现在的精力，是什么颜色？",
        "身体在发出什么信号？困？饿？酸？还是还好？",
        "你觉得今天的精力配置合理吗？有没有透支？",
        "晚上还有计划吗？你有精力执行吗？",
        "工作的事能放下吗？还是脑子里还在转？",
        "今天最消耗你精力的是哪件事？",
        "如果给今天的精力管理打个分，你给几分？",
        "一天下来，花园里的花还好吗？需要浇浇水了吗？",
        "现在让你学一个新东西，你学得进去吗？",
        "今天有没有给自己留出休息的空间？",
        "晚风吹一吹，感觉好一点了吗？",
        "对比早上的状态，你现在怎么样？",
        "辛苦了一天——你觉得今晚能睡个好觉吗？",
    ])
    + _bank(Period.NIGHT, "L", [
        "睡前来聊聊——今天过得怎么样？",
        "现在的你，准备好进入休息模式了吗？",
        "如果给今天的精力画一条曲线，它是什么形状的？",
        "脑子安静了吗？还是有很多事在转？",
        "明天有什么让你有压力的事吗？",
        "你觉得今天花园浇够水了吗？",
        "现在闭上眼睛 3 秒钟——你感觉到疲惫还是平静？",
        "如果可以对今天的自己说一句话，你会说什么？",
        "身体哪里最不舒服？还是整体都还好？",
        "今天有没有做什么让自己开心的事？",
        "你觉得自己今天保留了足够的精力恢复吗？",
        "手机放下了吗？还是还在刷？",
        "深呼吸三次——好一点了吗？",
        "明天想做点什么不一样的事吗？",
        "如果花园有话说，它现在会对你说什么？",
        "今天的你，值得被好好休息犒劳一下。你准备好了吗？",
        "数一数今天笑了几次？",
        "你的精力保留线今天守住了吗？",
        "夜深了，外面安静了。你的心呢？",
        "最后一个问题——你觉得今天的精力，花得值吗？",
    ])
)

_BY_TEXT = {q.text: q for q in QUESTIONS}


def questions_for_period(period: Period) -> list[Question]:
    return [q for q in QUESTIONS if q.period == period]


def question_id_for_text(text: str | None) -> str | None:
    """Catalog id of a stored prompt text; None for free-form or retired prompts."""
    if not text:
        return None
    q = _BY_TEXT.get(text.strip())
    return q.id if q else None


def select_question(
    period: Period,
    recent_ids: Iterable[str] = (),
    rng: random.Random | None = None,
) -> Question:
    """Random prompt for the period, skipping recent_ids unless that leaves nothing."""
    chooser = rng or random
    recent = set(recent_ids)
    full_pool = questions_for_period(period)
    pool = [q for q in full_pool if q.id not in recent]
    if not pool:
        pool = full_pool
    return chooser.choice(pool)
