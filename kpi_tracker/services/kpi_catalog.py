"""
Built-in D2C KPI hierarchy.

Revenue = traffic × CVR × average order value × LTV. The KGI (level 1)
splits into five drivers (level 2), then channel metrics (3), channel levers
(4) and leaf metrics (5). Used to seed the default template and as the last
fallback when no template rows exist at all.
"""

DEFAULT_TEMPLATE_ID = "default_d2c_template"
DEFAULT_TEMPLATE_NAME = "D2C standard KPI template"
DEFAULT_TEMPLATE_DESCRIPTION = (
    "Standard KPI set for D2C businesses, structured as "
    "revenue = traffic × CVR × average order value × LTV"
)

_FIELDS = (
    "id", "agent", "category", "name", "unit", "default_target",
    "benchmark_min", "benchmark_max", "level", "parent_kpi_id", "description",
)

# fmt: off
_ROWS = (
    # ── KGI ──────────────────────────────────────────────────────────────
    ("kgi_001", "COMMANDER", "KGI", "Annual revenue", "JPY", 1300000000, 1000000000, 1500000000, 1, None,
     "Annual revenue goal of 1.3bn JPY. Revenue = traffic × CVR × AOV × LTV"),

    # ── Level 2: drivers ─────────────────────────────────────────────────
    ("drv_traffic", "ACQUISITION", "Revenue driver", "Traffic", "sessions", 2000000, 1500000, 3000000, 2, "kgi_001",
     "Sessions across all channels; the starting point of revenue"),
    ("drv_cvr", "OPERATIONS", "Revenue driver", "Conversion rate", "%", 3.5, 2.0, 5.0, 2, "kgi_001",
     "Share of visitors who purchase"),
    ("drv_aov", "OPERATIONS", "Revenue driver", "Average order value", "JPY", 5000, 3000, 8000, 2, "kgi_001",
     "Average amount per order; raised by cross-sell and upsell"),
    ("drv_ltv", "ENGAGEMENT", "Revenue driver", "Customer lifetime value", "JPY", 15000, 10000, 25000, 2, "kgi_001",
     "Cumulative revenue per customer; raised by repeat programs"),
    ("drv_profit", "COMMANDER", "Profit", "Gross profit", "JPY", 845000000, 650000000, 950000000, 2, "kgi_001",
     "Revenue minus cost of goods. D2C gross margin goal: 60-70%"),

    # ── Level 3: traffic ─────────────────────────────────────────────────
    ("trf_amazon", "ACQUISITION", "Traffic by channel", "Amazon traffic", "sessions", 800000, 500000, 1200000, 3, "drv_traffic",
     "Sessions on Amazon product pages"),
    ("trf_rakuten", "ACQUISITION", "Traffic by channel", "Rakuten traffic", "sessions", 550000, 350000, 800000, 3, "drv_traffic",
     "Sessions on the Rakuten shop"),
    ("trf_own", "ACQUISITION", "Traffic by channel", "Own store traffic", "sessions", 600000, 400000, 900000, 3, "drv_traffic",
     "Sessions on the own e-commerce site"),
    ("trf_b2b", "ACQUISITION", "Traffic by channel", "B2B leads", "leads", 50000, 30000, 100000, 3, "drv_traffic",
     "B2B leads and inquiries"),
    ("ads_total", "ACQUISITION", "Ad investment", "Total ad spend", "JPY", 144000000, 100000000, 200000000, 3, "drv_traffic",
     "Ad investment across all channels"),

    # ── Level 3: conversion ──────────────────────────────────────────────
    ("cvr_amazon", "OPERATIONS", "CVR by channel", "Amazon CVR", "%", 4.0, 2.5, 6.0, 3, "drv_cvr",
     "Amazon purchase conversion. Typical: 3-5%"),
    ("cvr_rakuten", "OPERATIONS", "CVR by channel", "Rakuten CVR", "%", 4.0, 2.5, 6.0, 3, "drv_cvr",
     "Rakuten purchase conversion. Typical: 3-5%"),
    ("cvr_own", "OPERATIONS", "CVR by channel", "Own store CVR", "%", 3.0, 1.5, 5.0, 3, "drv_cvr",
     "Own store purchase conversion. Typical: 2-4%"),
    ("cvr_cart", "OPERATIONS", "CVR improvement", "Cart abandonment rate", "%", 70, 60, 80, 3, "drv_cvr",
     "Lower is better. Typical: 65-75%"),

    # ── Level 3: order value ─────────────────────────────────────────────
    ("aov_base", "OPERATIONS", "Pricing", "Average item price", "JPY", 5500, 4000, 7000, 3, "drv_aov",
     "Average selling price before discounts"),
    ("aov_cross", "OPERATIONS", "Pricing", "Cross-sell rate", "%", 15, 8, 25, 3, "drv_aov",
     "Share of orders with several products"),
    ("aov_discount", "OPERATIONS", "Pricing", "Discount rate", "%", 10, 5, 20, 3, "drv_aov",
     "Average discount; keep under 15% to protect margin"),
    ("aov_upsell", "OPERATIONS", "Pricing", "Upsell rate", "%", 10, 5, 20, 3, "drv_aov",
     "Conversion to higher-tier products"),

    # ── Level 3: lifetime value ──────────────────────────────────────────
    ("ltv_repeat", "ENGAGEMENT", "Repeat", "Repeat rate", "%", 40, 25, 55, 3, "drv_ltv",
     "Share of returning customers. D2C goal: 35-50%"),
    ("ltv_f2", "ENGAGEMENT", "Repeat", "F2 conversion", "%", 30, 20, 45, 3, "drv_ltv",
     "First to second purchase conversion"),
    ("ltv_freq", "ENGAGEMENT", "Repeat", "Purchase frequency", "times/year", 2.5, 1.5, 4.0, 3, "drv_ltv",
     "Purchases per customer per year"),
    ("ltv_interval", "ENGAGEMENT", "Repeat", "Purchase interval", "days", 60, 30, 90, 3, "drv_ltv",
     "Average days between purchases; shorter is better"),
    ("ltv_cac", "ACQUISITION", "Unit economics", "LTV/CAC ratio", "x", 3.0, 2.0, 5.0, 3, "drv_ltv",
     "Customer value over acquisition cost. Goal: 3.0x or more"),

    # ── Level 3: profit ──────────────────────────────────────────────────
    ("prf_margin", "COMMANDER", "Profit", "Gross margin", "%", 65, 55, 72, 3, "drv_profit",
     "Gross profit over revenue. D2C goal: 60-70%"),
    ("prf_op", "COMMANDER", "Profit", "Operating profit", "JPY", 195000000, 130000000, 260000000, 3, "drv_profit",
     "Gross profit minus SG&A"),

    # ── Level 4: Amazon ──────────────────────────────────────────────────
    ("amz_ads", "ACQUISITION", "Amazon ads", "Amazon ad clicks", "clicks", 400000, 250000, 600000, 4, "trf_amazon",
     "Clicks from Amazon sponsored ads"),
    ("amz_organic", "ACQUISITION", "Amazon traffic", "Amazon organic", "sessions", 400000, 250000, 600000, 4, "trf_amazon",
     "Organic sessions from Amazon search"),
    ("amz_spend", "ACQUISITION", "Amazon ads", "Amazon ad spend", "JPY", 55000000, 40000000, 75000000, 4, "trf_amazon",
     "Investment in Amazon sponsored ads"),
    ("amz_acos", "ACQUISITION", "Amazon ads", "ACoS", "%", 20, 12, 30, 4, "trf_amazon",
     "Ad cost of sales. Goal: under 25%"),

    # ── Level 4: Rakuten ─────────────────────────────────────────────────
    ("rkt_rpp", "ACQUISITION", "Rakuten ads", "RPP clicks", "clicks", 200000, 120000, 300000, 4, "trf_rakuten",
     "Clicks from Rakuten RPP ads"),
    ("rkt_organic", "ACQUISITION", "Rakuten traffic", "Rakuten organic", "sessions", 350000, 220000, 500000, 4, "trf_rakuten",
     "Organic sessions from Rakuten search"),
    ("rkt_spend", "ACQUISITION", "Rakuten ads", "Rakuten ad spend", "JPY", 35000000, 25000000, 50000000, 4, "trf_rakuten",
     "Investment in Rakuten RPP/CPC"),
    ("rkt_roas", "ACQUISITION", "Rakuten ads", "Rakuten ROAS", "%", 500, 350, 700, 4, "trf_rakuten",
     "Return on Rakuten ad spend"),

    # ── Level 4: own store ───────────────────────────────────────────────
    ("own_paid", "ACQUISITION", "Own store ads", "Google/Meta ads", "clicks", 300000, 180000, 450000, 4, "trf_own",
     "Paid traffic from Google and Meta ads"),
    ("own_seo", "ACQUISITION", "Own store traffic", "SEO organic", "sessions", 200000, 120000, 300000, 4, "trf_own",
     "Organic search traffic"),
    ("own_sns", "CREATIVE", "Own store traffic", "Social / influencers", "sessions", 100000, 50000, 180000, 4, "trf_own",
     "Traffic from social media and influencers"),
    ("own_affiliate", "ACQUISITION", "Affiliate", "Affiliate traffic", "sessions", 50000, 30000, 100000, 4, "trf_own",
     "Traffic from affiliates"),

    # ── Level 4: ad spend ────────────────────────────────────────────────
    ("ads_google", "ACQUISITION", "Google ads", "Google ad spend", "JPY", 30000000, 20000000, 45000000, 4, "ads_total",
     "Investment in Google search, shopping and display"),
    ("ads_meta", "ACQUISITION", "Meta ads", "Meta ad spend", "JPY", 24000000, 15000000, 35000000, 4, "ads_total",
     "Investment in Facebook and Instagram ads"),
    ("ads_cpa", "ACQUISITION", "Ad efficiency", "CPA", "JPY", 1846, 1000, 3000, 4, "ads_total",
     "Ad spend per conversion"),
    ("ads_roas", "ACQUISITION", "Ad efficiency", "ROAS", "%", 450, 300, 600, 4, "ads_total",
     "Return on ad spend. Goal: 400% or more"),

    # ── Level 4: repeat programs ─────────────────────────────────────────
    ("crm_email", "ENGAGEMENT", "CRM", "Email subscribers", "people", 80000, 50000, 120000, 4, "ltv_repeat",
     "Active email subscribers"),
    ("crm_line", "ENGAGEMENT", "CRM", "LINE friends", "people", 50000, 30000, 80000, 4, "ltv_repeat",
     "Friends of the official LINE account"),
    ("crm_app", "ENGAGEMENT", "CRM", "App users", "people", 20000, 10000, 40000, 4, "ltv_repeat",
     "Active app users"),
    ("ltv_f3", "ENGAGEMENT", "Repeat", "F3+ conversion", "%", 50, 35, 65, 4, "ltv_repeat",
     "Second to third-or-later purchase conversion"),

    # ── Level 4: operating profit ────────────────────────────────────────
    ("prf_op_margin", "COMMANDER", "Profit", "Operating margin", "%", 15, 10, 20, 4, "prf_op",
     "Operating profit over revenue. Goal: 15% or more"),

    # ── Level 5: ad channels ─────────────────────────────────────────────
    ("google_roas", "ACQUISITION", "Google ads", "Google ROAS", "%", 400, 280, 550, 5, "ads_google",
     "Return on Google ad spend"),
    ("meta_roas", "ACQUISITION", "Meta ads", "Meta ROAS", "%", 350, 250, 500, 5, "ads_meta",
     "Return on Meta ad spend"),

    # ── Level 5: email ───────────────────────────────────────────────────
    ("email_open", "ENGAGEMENT", "Email", "Email open rate", "%", 25, 15, 40, 5, "crm_email",
     "Typical: 20-30%"),
    ("email_ctr", "ENGAGEMENT", "Email", "Email CTR", "%", 3, 1.5, 6, 5, "crm_email",
     "Typical: 2-5%"),
    ("email_cvr", "ENGAGEMENT", "Email", "Email CVR", "%", 2, 1, 4, 5, "crm_email",
     "Purchase conversion from email"),
    ("email_rev", "ENGAGEMENT", "Email", "Email revenue", "JPY", 80000000, 50000000, 120000000, 5, "crm_email",
     "Revenue attributed to email marketing"),

    # ── Level 5: LINE ────────────────────────────────────────────────────
    ("line_open", "ENGAGEMENT", "LINE", "LINE open rate", "%", 60, 40, 80, 5, "crm_line",
     "Typical: 50-70%"),
    ("line_ctr", "ENGAGEMENT", "LINE", "LINE CTR", "%", 8, 4, 15, 5, "crm_line",
     "Typical: 5-10%"),
    ("line_cvr", "ENGAGEMENT", "LINE", "LINE CVR", "%", 3, 1.5, 6, 5, "crm_line",
     "Purchase conversion from LINE"),
    ("line_rev", "ENGAGEMENT", "LINE", "LINE revenue", "JPY", 60000000, 30000000, 100000000, 5, "crm_line",
     "Revenue attributed to LINE marketing"),

    # ── Level 5: social ──────────────────────────────────────────────────
    ("sns_ig", "CREATIVE", "Social", "Instagram followers", "people", 50000, 20000, 100000, 5, "own_sns",
     "Followers of the Instagram account"),
    ("sns_engagement", "CREATIVE", "Social", "Engagement rate", "%", 3, 2, 6, 5, "own_sns",
     "Typical: 2-4%"),
    ("sns_ugc", "CREATIVE", "UGC", "UGC posts", "posts", 1000, 500, 2000, 5, "own_sns",
     "User-generated content posts"),

    # ── Level 5: content ─────────────────────────────────────────────────
    ("crt_pages", "CREATIVE", "Content", "Product pages", "pages", 100, 50, 200, 5, "own_seo",
     "Optimized product detail pages"),
    ("crt_blog", "CREATIVE", "Content", "Blog articles", "articles", 200, 100, 400, 5, "own_seo",
     "Blog articles for SEO"),

    # ── Level 5: operations ──────────────────────────────────────────────
    ("ops_stock", "OPERATIONS", "Inventory", "Days of inventory", "days", 45, 30, 60, 5, "aov_base",
     "Inventory turnover in days. Goal: 30-60"),
    ("ops_stockout", "OPERATIONS", "Inventory", "Stock-out rate", "%", 2, 0, 5, 5, "aov_base",
     "Goal: under 3%"),
    ("ops_delivery", "OPERATIONS", "Fulfillment", "Delivery days", "days", 2, 1, 3, 5, "cvr_own",
     "Average delivery lead time. Goal: 1-2 days"),
    ("ops_return", "OPERATIONS", "Fulfillment", "Return rate", "%", 3, 1, 5, 5, "cvr_own",
     "Goal: under 5%"),

    # ── Level 5: customer insight ────────────────────────────────────────
    ("ins_nps", "INSIGHT", "Analytics", "NPS", "points", 40, 20, 60, 5, "ltv_repeat",
     "Net promoter score, -100 to +100. Healthy: 30+"),
    ("ins_review", "INSIGHT", "Analytics", "Review rating", "stars", 4.5, 4.0, 5.0, 5, "ltv_repeat",
     "Average review rating out of 5"),
    ("ins_30d", "INSIGHT", "Cohort", "30-day retention", "%", 45, 30, 60, 5, "ltv_freq",
     "Customers repurchasing within 30 days"),
    ("ins_90d", "INSIGHT", "Cohort", "90-day retention", "%", 25, 15, 40, 5, "ltv_freq",
     "Customers repurchasing within 90 days"),

    # ── Level 5: ad creative ─────────────────────────────────────────────
    ("crt_ads", "CREATIVE", "Ad creative", "Ad creatives", "creatives", 100, 50, 200, 5, "own_paid",
     "Active ad creatives"),
    ("crt_ctr", "CREATIVE", "Ad creative", "Ad CTR", "%", 1.5, 0.8, 3.0, 5, "own_paid",
     "Ad click-through rate"),
)
# fmt: on

DEFAULT_KPI_DATA: tuple[dict, ...] = tuple(dict(zip(_FIELDS, row)) for row in _ROWS)
