# Marketplace report sync
# Pulls Wildberries / Ozon seller reports and lands them in CSV files or Google Sheets
