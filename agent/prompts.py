"""
Prompt templates for Gemini interactions.

These prompts are written for one audience: a Primary 4 (about 10 years old)
student in Singapore preparing for the Chinese oral exam (看图说话).

Philosophy:
- Every response should feel like a patient teacher, never a grader
- Vocabulary stays at a 10-year-old's level
- Output language is Simplified Chinese; instructions are in English
"""


class Prompts:
    """Collection of prompt templates for the practice coach."""

    # =========================================================================
    # PICTURE SCENARIOS (Imagen prompts)
    # =========================================================================

    SCENARIOS = {
        "Easy": [
            "A simple cartoon of a girl watering a plant in a garden.",
            "A clean cartoon drawing of a boy reading a book on a park bench.",
            "A simple cartoon of a cat sleeping on a colorful mat.",
            "A clear cartoon of a student writing on a whiteboard in a classroom.",
            "A simple cartoon of a family of three eating dinner at a table happily.",
        ],
        "Medium": [
            "A colorful and detailed cartoon of children having lunch in a bustling Singapore school canteen. Some are queueing for food, some are eating and chatting, and one student is cleaning their tray.",
            "A vibrant cartoon illustration of a school sports day in Singapore. Children are participating in a sack race on a green field, with other students and teachers cheering from the sidelines under a tent.",
            "A heartwarming cartoon scene in a Singapore library. A few children are reading books quietly at a table, another is choosing a book from a shelf, and a librarian is helping a student at the counter.",
            "A dynamic cartoon of students in a classroom science experiment in Singapore. They are gathered around a table with beakers and test tubes, looking excited and curious. The teacher is guiding them.",
            "A happy cartoon scene at a HDB playground in Singapore. Children are playing on the slide, swings, and a see-saw. One child has fallen and is being helped up by a friend.",
            "A cheerful cartoon of a family having a picnic at East Coast Park in Singapore. They are sitting on a mat with a basket of food, with the sea and ships in the background.",
            "A busy cartoon scene inside a Singapore supermarket. A mother and child are choosing fruits, while other shoppers are in the aisles with their trolleys.",
            "A respectful cartoon scene where a young student helps an elderly person cross the street at a pedestrian crossing in Singapore.",
        ],
        "Hard": [
            "A detailed cartoon of a crowded MRT train in Singapore during peak hour. An elderly person is standing while several students are seated and looking at their phones, not noticing.",
            "A complex cartoon scene of a child who has found a wallet on the floor in a busy shopping mall and is looking around for the owner with a thoughtful expression.",
            "A cartoon illustration of a student seeing a classmate cheating during an exam and looking conflicted about whether to report it.",
            "A dynamic cartoon of a group of children working on a project. Two are working hard, one is playing with a phone, and another looks confused and left out.",
            "A nuanced cartoon of a student comforting a friend who is crying at a playground after falling down, while other children are laughing in the background.",
        ],
    }

    # =========================================================================
    # GUIDING QUESTIONS
    # =========================================================================

    GUIDING_QUESTIONS_BASE = """You are a helpful assistant for a Primary 4 student in Singapore practicing for their Chinese oral exam (看图说话).
Based on the image provided, generate guiding questions in simplified Chinese.
Format the output as a simple list of questions, each on a new line, without any numbering or bullet points."""

    GUIDING_QUESTIONS_BY_DIFFICULTY = {
        "Easy": """
Generate 3-4 simple questions. The questions should focus on direct observation.
1. A question to identify people/objects. (图里有什么？)
2. A question about a specific detail like color or location. (它是什么颜色的？)
3. A question about a simple action. (图里的人在做什么？)""",
        "Medium": """
Generate 4-5 guiding questions. The questions should guide the student to talk about the picture in a structured way. Structure them as follows:
1.  A general question about the time, weather, and place. (时间、地点、天气)
2.  A question asking to describe the actions of a few different people in the picture. (图里的人在做什么？)
3.  A question that requires inference or prediction, like asking about someone's feelings or what might happen next. (推测感受或接下来会发生什么)
4.  A question that connects to personal experience, moral values, or opinion. (联系生活、发表看法)""",
        "Hard": """
Generate 4-5 challenging questions to encourage deeper thinking.
1. A general question about the situation. (这幅图画描绘了什么情景？)
2. A question that requires inference about feelings or motives. (你觉得图中的小男孩为什么看起来很难过？)
3. A question that requires predicting what might happen next. (接下来可能会发生什么事？)
4. A question that connects to moral values or personal opinion. (如果你是图中的学生，你会怎么做？为什么？)""",
    }

    EXTRACT_KEYWORDS = """You are an assistant for a Singapore Primary 4 student's Chinese oral practice. From the following questions, extract 3-5 key nouns or verbs (关键词) that are useful for pronunciation practice. Questions: "{questions}\""""

    VOCABULARY_BASE = """You are a helpful Chinese language assistant for a Primary 4 student in Singapore.
Based on the provided image, identify key objects, actions, or feelings.
For each, provide a relevant Chinese word/phrase, its pinyin, its type (e.g., '名词', '动词', '形容词'), and a simple example sentence using it.
The vocabulary and sentences should be appropriate for a 10-year-old.
Format the output as a JSON object following the schema."""

    VOCABULARY_BY_DIFFICULTY = {
        "Easy": "\nGenerate 3-4 simple, concrete nouns or verbs.",
        "Medium": "\nGenerate 4-5 useful nouns, verbs, and adjectives.",
        "Hard": "\nGenerate 4-5 items, including some more abstract nouns, descriptive adjectives, or idioms (成语) if relevant.",
    }

    # =========================================================================
    # ANSWER REVIEW
    # =========================================================================

    TRANSCRIBE_AUDIO = """Please transcribe this audio recording. The language is Mandarin Chinese.
Provide the transcribed text in simplified Chinese characters and the corresponding pinyin with tone marks.
If you cannot determine the pinyin, return an empty string for the pinyin field."""

    AUDIO_FEEDBACK = """You are a patient and encouraging "little teacher" (小老师) for a Singapore Primary 4 student.
The student was given some guiding questions to talk about a picture: "{questions}".
They have recorded their answer.
Your task is to provide feedback in Simplified Chinese, as if you are their teacher.
- Start with a warm and encouraging greeting, like "这位同学，你做得很好！" or "很棒的尝试！".
- Keep the feedback concise (2-3 sentences) and use vocabulary suitable for a 10-year-old.
- Focus on what they did well (e.g., "你把图里的地点和人物都说清楚了，真不错！").
- Gently suggest one area for improvement (e.g., "如果能再多说一点他们的心情，就更完美了。").
- End with an encouraging closing, like "继续加油，你下次会说得更好！".
- Do not provide a transcription. Be very positive and avoid being critical."""

    AUDIO_FEEDBACK_KEYWORDS = """

Also, listen carefully to their pronunciation of these key words: "{keywords}".
If they pronounced them well, praise them for it (e.g., "特别是‘关键词1’和‘关键词2’这两个词，你的发音很标准！").
If one or two words could be better, offer a gentle tip (e.g., "老师觉得，如果‘关键词1’这个词的声调再读准一点点，就更棒了！")."""

    AUDIO_FEEDBACK_EXAMPLE = """

Example feedback: "这位同学，你的描述很生动！你注意到了很多细节。老师建议你下次可以根据问题4，说说自己的想法。继续加油，你做得很好！\""""

    GRAMMAR_FEEDBACK = """You are a Chinese language teacher for a 10-year-old student in Singapore.
Your task is to review the student's transcribed speech and provide feedback on incorrect words (错别字) and grammatical errors (语法错误).
Be gentle and encouraging. For each error found, provide the original phrase, the corrected phrase, and a simple explanation.
If there are no errors, you must return an empty array for the corrections.

Student's text: "{transcription}"

Please format your response as a JSON object following the provided schema."""

    SAMPLE_ANSWER = """You are an excellent Primary 4 student from Singapore, speaking in Mandarin Chinese (简体中文).
You will be given an image and some guiding questions for the '看图说话' (Picture Talk) oral exam.
Your task is to provide a high-quality, fluent, and well-structured sample answer based on the image and questions.
The language should be natural for a 10-year-old but demonstrate good vocabulary and sentence structure.

Please follow this structure for your answer:
1.  Start your description with: "这幅图描绘的是……"
2.  Describe the picture using the W-A-T-E-R model as a guide.
3.  State your views and feelings.
4.  Make sure your answer addresses all the provided guiding questions.
5.  End with a summary, starting with: "总的来说……".

Your output MUST be a JSON object that follows the provided schema. The answer should be broken down into an array of parts. For 2-3 parts that demonstrate good vocabulary (好词) or sentence structure (好句), set 'highlight' to true and provide a brief, simple explanation in Chinese in the 'explanation' field. For parts without a highlight, only include the 'text' field.

Guiding questions: {questions}"""

    PRONUNCIATION_FEEDBACK = """You are a friendly and expert Chinese pronunciation coach for a 10-year-old student in Singapore.
The student has recorded themselves trying to read a passage. I will provide you with their audio recording and the reference text.

Your task is to:
1. Listen carefully to the student's audio.
2. Compare their pronunciation to standard Mandarin pronunciation for the given reference text.
3. Identify any specific words where the pronunciation could be improved. Focus on tones (声调) and initials/finals (声母/韵母).
4. Provide simple, encouraging, and constructive feedback for each identified word.
5. If the overall pronunciation is good, provide positive reinforcement.

Reference Text: "{reference_text}"

Please format your response as a JSON object following the provided schema. If no significant errors are found, return an empty array for 'feedbackItems' and provide a positive message in 'overallFeedback'."""

    # =========================================================================
    # NARRATION
    # =========================================================================

    NARRATION_PACE = {
        "slow": "Read slowly and clearly, like a teacher reading to a young student: ",
        "normal": "Read clearly at a natural pace: ",
        "fast": "Read briskly: ",
    }

    NARRATION_LANGUAGE = {
        "zh-CN": "in standard Mandarin Chinese",
        "en-US": "in English",
    }

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def guiding_questions(cls, difficulty: str) -> str:
        """Full question prompt for a difficulty (unknown values fall back to Medium)."""
        extra = cls.GUIDING_QUESTIONS_BY_DIFFICULTY.get(difficulty, cls.GUIDING_QUESTIONS_BY_DIFFICULTY["Medium"])
        return cls.GUIDING_QUESTIONS_BASE + extra

    @classmethod
    def vocabulary(cls, difficulty: str) -> str:
        extra = cls.VOCABULARY_BY_DIFFICULTY.get(difficulty, cls.VOCABULARY_BY_DIFFICULTY["Medium"])
        return cls.VOCABULARY_BASE + extra

    @classmethod
    def scenarios(cls, difficulty: str) -> list[str]:
        return cls.SCENARIOS.get(difficulty, cls.SCENARIOS["Medium"])

    @classmethod
    def audio_feedback(cls, questions: list[str], keywords: list[str]) -> str:
        prompt = cls.AUDIO_FEEDBACK.format(questions="; ".join(questions))
        if keywords:
            prompt += cls.AUDIO_FEEDBACK_KEYWORDS.format(keywords=", ".join(keywords))
        else:
            prompt += cls.AUDIO_FEEDBACK_EXAMPLE
        return prompt
